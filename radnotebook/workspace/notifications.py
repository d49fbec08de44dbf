"""User-facing notifications raised by the workspace (failed mutations, mostly)."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    title: str
    description: str
    variant: str = "default"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    def __init__(self, listener: Optional[Callable[[Notification], None]] = None):
        self.items: List[Notification] = []
        self.listener = listener

    def notify(self, title: str, description: str, variant: str = "default") -> Notification:
        note = Notification(title=title, description=description, variant=variant)
        self.items.append(note)
        if self.listener is not None:
            self.listener(note)
        return note

    def failure(self, action: str, detail: Optional[str] = None) -> Notification:
        """Record that `action` (e.g. "update section") did not reach the server"""
        logger.warning("Failed to %s: %s", action, detail or "unknown error")
        return self.notify("Error", f"Failed to {action}", variant="destructive")

    def clear(self) -> None:
        self.items.clear()
