"""No-op sync client used when no backend is configured."""

from typing import Any, Optional

from eventplanner.models.planner import (
    BudgetCategory,
    BudgetExpense,
    Event,
    Project,
    Task,
)
from eventplanner.services.sync.interface import (
    EntityT,
    EventCallback,
    RemoteCollection,
    RemoteSyncInterface,
)


class DisabledCollection(RemoteCollection[EntityT]):
    """Every call succeeds at doing nothing."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type

    async def list(self) -> list[EntityT]:
        return []

    async def create(self, entity: EntityT) -> Optional[EntityT]:
        return None

    async def update(self, entity_id: str, changes: dict[str, Any]) -> bool:
        return False

    async def delete(self, entity_id: str) -> bool:
        return False


class DisabledSyncClient(RemoteSyncInterface):
    """Sync client for a planner that only lives on this device."""

    def __init__(self):
        self._user_id: Optional[str] = None
        self._events: DisabledCollection[Event] = DisabledCollection("event")
        self._projects: DisabledCollection[Project] = DisabledCollection("project")
        self._tasks: DisabledCollection[Task] = DisabledCollection("task")
        self._categories: DisabledCollection[BudgetCategory] = DisabledCollection("budget_category")
        self._expenses: DisabledCollection[BudgetExpense] = DisabledCollection("budget_expense")

    @property
    def is_enabled(self) -> bool:
        return False

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def set_user_id(self, user_id: Optional[str]) -> None:
        self._user_id = user_id

    @property
    def events(self) -> DisabledCollection[Event]:
        return self._events

    @property
    def projects(self) -> DisabledCollection[Project]:
        return self._projects

    @property
    def tasks(self) -> DisabledCollection[Task]:
        return self._tasks

    @property
    def budget_categories(self) -> DisabledCollection[BudgetCategory]:
        return self._categories

    @property
    def budget_expenses(self) -> DisabledCollection[BudgetExpense]:
        return self._expenses

    async def share_project(self, project_id: str, user_ids: list[str]) -> bool:
        return False

    async def subscribe_to_events(self, callback: EventCallback) -> bool:
        return False

    async def unsubscribe_all(self) -> None:
        return None
