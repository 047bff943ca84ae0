"""In-memory key-value store for tests and throwaway sessions."""

from typing import Optional

from eventplanner.services.storage.interface import (
    KeyValueStore,
    StorageReadError,
    StorageWriteError,
)


class InMemoryStore(KeyValueStore):
    """
    Dict-backed store.

    `fail_reads` / `fail_writes` name keys whose operations raise, which
    lets tests exercise the best-effort persistence paths.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.write_log: list[tuple[str, Optional[str]]] = []

    async def get(self, key: str) -> Optional[str]:
        if key in self.fail_reads:
            raise StorageReadError(key, "simulated read failure")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if key in self.fail_writes:
            raise StorageWriteError(key, "simulated write failure")
        self.data[key] = value
        self.write_log.append((key, value))

    async def remove(self, key: str) -> None:
        if key in self.fail_writes:
            raise StorageWriteError(key, "simulated write failure")
        self.data.pop(key, None)
        self.write_log.append((key, None))
