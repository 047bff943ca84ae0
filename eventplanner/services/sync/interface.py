"""
Remote Sync Interface

DESIGN DECISION: Remote sync is a capability, not a dependency.
Two implementations exist:
1. DisabledSyncClient - chosen when no backend is configured; every call
   is a no-op that returns an empty/failed result
2. SupabaseSyncClient - the networked client

Callers never branch on which one they hold.

FAILURE CONTRACT: No method raises. Network, auth and schema failures
are converted to [] / None / False at this boundary, so nothing remote
can break a local mutation.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar

from eventplanner.models.planner import (
    BudgetCategory,
    BudgetExpense,
    Event,
    PlannerEntity,
    Project,
    Task,
)


EntityT = TypeVar("EntityT", bound=PlannerEntity)

EventCallback = Callable[[Event], None]


class RemoteCollection(ABC, Generic[EntityT]):
    """CRUD contract for one remote table."""

    entity_type: str

    @abstractmethod
    async def list(self) -> list[EntityT]:
        """
        Every record visible to the current user.

        Returns:
            The records, or [] when disabled, signed out or failing
        """
        pass

    @abstractmethod
    async def create(self, entity: EntityT) -> Optional[EntityT]:
        """
        Insert a locally created entity, keeping its id.

        Returns:
            The stored record, or None on failure
        """
        pass

    @abstractmethod
    async def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        """
        Apply a partial update keyed by field name.

        Returns:
            True if the backend accepted the update
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if the backend accepted the delete
        """
        pass


class RemoteSyncInterface(ABC):
    """
    Remote backend capability.

    Per-entity collections plus realtime event subscription.
    """

    @property
    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether calls can reach a backend at all."""
        pass

    @property
    @abstractmethod
    def user_id(self) -> Optional[str]:
        pass

    @abstractmethod
    def set_user_id(self, user_id: Optional[str]) -> None:
        """Scope every subsequent call to this user (None signs out)."""
        pass

    @property
    @abstractmethod
    def events(self) -> RemoteCollection[Event]:
        pass

    @property
    @abstractmethod
    def projects(self) -> RemoteCollection[Project]:
        pass

    @property
    @abstractmethod
    def tasks(self) -> RemoteCollection[Task]:
        pass

    @property
    @abstractmethod
    def budget_categories(self) -> RemoteCollection[BudgetCategory]:
        pass

    @property
    @abstractmethod
    def budget_expenses(self) -> RemoteCollection[BudgetExpense]:
        pass

    @abstractmethod
    async def share_project(self, project_id: str, user_ids: list[str]) -> bool:
        """Replace the set of users a project is shared with."""
        pass

    @abstractmethod
    async def subscribe_to_events(self, callback: EventCallback) -> bool:
        """
        Deliver inserts and updates of the current user's events.

        The callback may run on a thread other than the caller's.

        Returns:
            True if a channel was opened
        """
        pass

    @abstractmethod
    async def unsubscribe_all(self) -> None:
        """Close every open realtime channel."""
        pass

    def collection_for(self, entity_type: str) -> RemoteCollection:
        """Collection by entity type name (e.g. 'budget_expense')."""
        collections = {
            "event": self.events,
            "project": self.projects,
            "task": self.tasks,
            "budget_category": self.budget_categories,
            "budget_expense": self.budget_expenses,
        }
        try:
            return collections[entity_type]
        except KeyError:
            raise ValueError(f"Unknown entity type: {entity_type}") from None
