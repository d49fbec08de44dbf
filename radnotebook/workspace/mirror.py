"""
Optimistic collection: one local mirror of a remote table.

Every mutation follows the same steps:

1. remember what the change replaces,
2. apply the change locally right away,
3. run the remote call in a worker thread,
4. on success swap a create's placeholder for the server row,
5. on failure undo only that change and record a notification.

A failed create drops its placeholder, a failed update puts back the fields
it touched, a failed delete reinserts the row. Reorder rewrites every order
key, so it restores the whole collection.

Mutations return an asyncio.Task resolving to True/False; they never raise
remote failures into the caller.
"""
from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from radnotebook.workspace.gateway import GatewayError
from radnotebook.workspace.notifications import Notifier

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

PLACEHOLDER_PREFIX = "pending-"

SINGULAR = {
    "projects": "project",
    "analyses": "analysis",
    "datasets": "dataset",
    "sections": "section",
}


def is_placeholder(record_id: Optional[str]) -> bool:
    return isinstance(record_id, str) and record_id.startswith(PLACEHOLDER_PREFIX)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OptimisticCollection:
    def __init__(
        self,
        table: str,
        gateway: Any,
        notifier: Notifier,
        sort_field: str = "created_at",
        descending: bool = False,
    ):
        self.table = table
        self.label = SINGULAR.get(table, table)
        self.gateway = gateway
        self.notifier = notifier
        self.sort_field = sort_field
        self.descending = descending
        self._items: List[Record] = []
        self.pending: Set[asyncio.Task] = set()

    # ---- reads ----

    @property
    def items(self) -> List[Record]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def ids(self) -> List[str]:
        return [r["id"] for r in self._items]

    def get(self, record_id: Optional[str]) -> Optional[Record]:
        if record_id is None:
            return None
        for record in self._items:
            if record["id"] == record_id:
                return record
        return None

    def _index(self, record_id: str) -> int:
        for i, record in enumerate(self._items):
            if record["id"] == record_id:
                return i
        return -1

    # ---- local state ----

    def _sort(self) -> None:
        field = self.sort_field

        def key(record: Record):
            value = record.get(field)
            if value is None:
                return (0, "")
            return (1, value)

        self._items.sort(key=key, reverse=self.descending)

    def replace_all(self, records: Iterable[Record]) -> None:
        self._items = [dict(r) for r in records]
        self._sort()

    def clear(self) -> None:
        self._items = []

    def snapshot(self) -> List[Record]:
        return copy.deepcopy(self._items)

    def restore(self, snapshot: List[Record]) -> None:
        self._items = copy.deepcopy(snapshot)

    # ---- task plumbing ----

    def spawn(self, coro: Awaitable[bool]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        return task

    async def _commit(
        self,
        action: str,
        revert: Callable[[], None],
        remote: Callable[[], Awaitable[Any]],
        on_success: Optional[Callable[[Any], Any]] = None,
        on_failure: Optional[Callable[[], None]] = None,
    ) -> bool:
        try:
            result = await remote()
        except GatewayError as e:
            self._rollback(action, revert, on_failure, e.message)
            return False
        except Exception as e:
            logger.exception("Unexpected error during %s", action)
            self._rollback(action, revert, on_failure, f"{type(e).__name__}: {e}")
            return False

        if on_success is not None:
            outcome = on_success(result)
            if inspect.isawaitable(outcome):
                await outcome
        return True

    def _rollback(self, action, revert, on_failure, detail) -> None:
        revert()
        if on_failure is not None:
            on_failure()
        self.notifier.failure(action, detail)

    # ---- mutations ----

    def create(
        self,
        values: Record,
        on_success: Optional[Callable[[Record], Any]] = None,
    ) -> asyncio.Task:
        """Insert a placeholder now; replace it with the server row when it arrives."""
        placeholder = {**copy.deepcopy(values), "id": f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"}
        placeholder.setdefault("created_at", _now_iso())
        self._items.append(placeholder)
        self._sort()

        def revert():
            self._items = [r for r in self._items if r["id"] != placeholder["id"]]

        async def remote():
            record = await asyncio.to_thread(self.gateway.create, self.table, dict(values))
            self._swap(placeholder["id"], record)
            return record

        return self.spawn(self._commit(f"create {self.label}", revert, remote, on_success))

    def _swap(self, placeholder_id: str, record: Record) -> None:
        i = self._index(placeholder_id)
        if i < 0:
            # mirror was refilled for another scope meanwhile
            logger.debug("placeholder %s gone, dropping server row %s", placeholder_id, record.get("id"))
            return
        self._items[i] = dict(record)
        self._sort()

    def update(
        self,
        record_id: str,
        changes: Record,
        on_success: Optional[Callable[[Record], Any]] = None,
    ) -> asyncio.Task:
        i = self._index(record_id)
        previous = copy.deepcopy(self._items[i]) if i >= 0 else None
        if i >= 0:
            self._items[i] = {**self._items[i], **copy.deepcopy(changes)}
            self._sort()

        def revert():
            # only the fields this update touched go back
            j = self._index(record_id)
            if previous is None or j < 0:
                return
            record = dict(self._items[j])
            for field in changes:
                if field in previous:
                    record[field] = copy.deepcopy(previous[field])
                else:
                    record.pop(field, None)
            self._items[j] = record
            self._sort()

        async def remote():
            return await asyncio.to_thread(self.gateway.update, self.table, record_id, dict(changes))

        return self.spawn(self._commit(f"update {self.label}", revert, remote, on_success))

    def delete(
        self,
        record_id: str,
        on_success: Optional[Callable[[Any], Any]] = None,
        on_failure: Optional[Callable[[], None]] = None,
    ) -> asyncio.Task:
        i = self._index(record_id)
        removed = self._items.pop(i) if i >= 0 else None

        def revert():
            if removed is None or self._index(record_id) >= 0:
                return
            self._items.insert(min(i, len(self._items)), removed)
            self._sort()

        async def remote():
            return await asyncio.to_thread(self.gateway.delete, self.table, record_id)

        return self.spawn(self._commit(f"delete {self.label}", revert, remote, on_success, on_failure))

    def reorder(self, ordered_ids: List[str], order_field: str) -> asyncio.Task:
        """Rewrite order keys to 0..N-1 following `ordered_ids`, then push changed rows one by one."""
        by_id = {r["id"]: r for r in self._items}
        if sorted(ordered_ids) != sorted(by_id):
            raise ValueError("reorder needs every record id exactly once")

        snapshot = self.snapshot()
        previous = {record_id: r.get(order_field) for record_id, r in by_id.items()}
        self._items = [{**by_id[record_id], order_field: n} for n, record_id in enumerate(ordered_ids)]
        changed = [(record_id, n) for n, record_id in enumerate(ordered_ids) if previous[record_id] != n]

        async def remote():
            for record_id, n in changed:
                await asyncio.to_thread(self.gateway.update, self.table, record_id, {order_field: n})

        return self.spawn(self._commit(f"reorder {self.table}", lambda: self.restore(snapshot), remote))
