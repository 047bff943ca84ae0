"""
Abstract Storage Interface

DESIGN DECISION: Local persistence is a plain key-value contract.
This allows us to:
1. Swap the JSON file store for any other device storage
2. Use in-memory storage for testing
3. Keep the repository decoupled from where the bytes live

The store knows nothing about entities - it holds serialized strings
under a handful of well-known keys.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional


class StorageKey(str, Enum):
    """The six logical keys the planner persists."""
    TASKS = "tasks"
    PROJECTS = "projects"
    BUDGET_CATEGORIES = "budget-categories"
    BUDGET_EXPENSES = "budget-expenses"
    EVENTS = "events"
    # Holds a bare event id, not JSON
    SELECTED_EVENT = "selected-event"


class KeyValueStore(ABC):
    """
    Abstract interface for durable key-value storage.

    Any backend (files, a database, an in-memory dict) must implement
    these methods. Every method may raise StorageError.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the serialized value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None when the key is absent

        Raises:
            StorageReadError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a serialized value, replacing any previous one.

        Raises:
            StorageWriteError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.

        Raises:
            StorageWriteError: If the removal fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


class StorageReadError(StorageError):
    """A key could not be read."""
    pass


class StorageWriteError(StorageError):
    """A key could not be written or removed."""
    pass
