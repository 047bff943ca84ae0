"""
Ordered, fire-and-forget persistence writes.

DESIGN DECISION: Mutations never wait for storage.
The repository hands each serialized snapshot to this queue and returns
immediately. Writes to the same key are chained so they land in call
order: a slow earlier write can never overwrite a later one. Writes to
different keys run independently.

Failures are reported to a callback and swallowed. In-memory state stays
authoritative for the session; nothing is rolled back.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from eventplanner.services.storage.interface import KeyValueStore


logger = structlog.get_logger(__name__)

WriteErrorHandler = Callable[[str, Exception], None]


class OrderedWriteQueue:
    """Per-key serialized write queue over a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        on_error: Optional[WriteErrorHandler] = None,
    ):
        self._store = store
        self._on_error = on_error
        self._tails: dict[str, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def set(self, key: str, value: str) -> asyncio.Task:
        """Schedule `store.set(key, value)` after earlier writes to key."""
        return self._enqueue(key, lambda: self._store.set(key, value))

    def remove(self, key: str) -> asyncio.Task:
        """Schedule `store.remove(key)` after earlier writes to key."""
        return self._enqueue(key, lambda: self._store.remove(key))

    def pending_keys(self) -> list[str]:
        """Keys with a write still in flight."""
        return sorted(self._tails)

    async def flush(self) -> None:
        """Wait until every scheduled write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _enqueue(self, key: str, operation: Callable[[], Awaitable[None]]) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        previous = self._tails.get(key)
        task = loop.create_task(self._run(key, operation, previous))
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(lambda done: self._finished(key, done))
        return task

    async def _run(
        self,
        key: str,
        operation: Callable[[], Awaitable[None]],
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report(key, e)

    def _finished(self, key: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(key) is task:
            del self._tails[key]

    def _report(self, key: str, error: Exception) -> None:
        logger.error("persistence_write_failed", key=key, error=str(error))
        if self._on_error is None:
            return
        try:
            self._on_error(key, error)
        except Exception as e:
            logger.error("persistence_error_handler_failed", key=key, error=str(e))
