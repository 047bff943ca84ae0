"""
Storage Services Package

Provides the key-value storage interface, its file and in-memory
implementations, and the ordered write queue the repository persists
through.
"""

from eventplanner.services.storage.interface import (
    KeyValueStore,
    StorageError,
    StorageKey,
    StorageReadError,
    StorageWriteError,
)
from eventplanner.services.storage.json_file import JsonFileStore
from eventplanner.services.storage.memory import InMemoryStore
from eventplanner.services.storage.write_queue import OrderedWriteQueue

__all__ = [
    # Interface
    "KeyValueStore",
    "StorageKey",
    # Exceptions
    "StorageError",
    "StorageReadError",
    "StorageWriteError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
    "OrderedWriteQueue",
]
