"""Debounced commit for free-text fields (section content, titles, descriptions)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.6


class DebouncedEdit:
    """
    Buffers keystrokes and commits the latest value after `delay` seconds of
    quiet. `flush()` commits right away (blur, navigation). A value equal to the
    last committed one is never sent. When `commit` returns a task that
    resolves to False, the value counts as uncommitted again.
    """

    def __init__(self, commit: Callable[[str], Any], initial: str = "", delay: float = DEFAULT_DELAY):
        self.commit = commit
        self.delay = delay
        self.value = initial
        self.committed = initial
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def dirty(self) -> bool:
        return self.value != self.committed

    def edit(self, value: str) -> None:
        self.value = value
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self._commit()

    def flush(self) -> Any:
        self.cancel()
        return self._commit()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _commit(self) -> Any:
        if not self.dirty:
            return None
        previous, value = self.committed, self.value
        self.committed = value
        logger.debug("committing buffered edit (%d chars)", len(value))
        result = self.commit(value)
        if isinstance(result, asyncio.Future):
            result.add_done_callback(lambda fut: self._settled(fut, previous, value))
        return result

    def _settled(self, fut: asyncio.Future, previous: str, value: str) -> None:
        if fut.cancelled() or fut.exception() is not None or fut.result() is False:
            # save was rolled back, so the buffer is dirty again
            if self.committed == value:
                self.committed = previous
