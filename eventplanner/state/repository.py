"""
Entity Repository

The single source of truth for tasks, projects, events, budget
categories and budget expenses while the process runs.

DESIGN DECISION: Explicit store object, explicit init.
`await PlannerStore.load(store)` reads the persisted collections once;
after that every read is served from memory. The application root owns
the instance and hands it to whoever needs it.

EVERY MUTATION RUNS IN THIS ORDER:
1. Persist   - serialized snapshot queued on the ordered write queue
2. Apply     - in-memory collection replaced
3. Recompute - mirrored expenses and category totals re-derived; only
               collections that actually changed are persisted
4. Notify    - observers receive one PlannerChange per touched entity

Mutations are synchronous and never wait on storage. They must run on
the event loop thread, which also makes each one a critical section:
remote merges go through the same path and cannot interleave with it.

Persistence is best-effort: a failed write is logged and audited, and
the in-memory state stays authoritative.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Type
from uuid import uuid4

import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from eventplanner.audit import AuditLogger
from eventplanner.config import AppSettings, get_settings
from eventplanner.models.audit import AuditEventBuilder
from eventplanner.models.planner import (
    DEFAULT_BUDGET_CATEGORIES,
    DEFAULT_CATEGORY_ID,
    BudgetCategory,
    BudgetExpense,
    BudgetTotals,
    Event,
    PlannerEntity,
    Project,
    Task,
    TaskListView,
    TaskPage,
    TaskPriority,
    TaskStats,
    TaskStatus,
    utcnow,
)
from eventplanner.services.storage import (
    KeyValueStore,
    OrderedWriteQueue,
    StorageError,
    StorageKey,
)
from eventplanner.state import derivation, scoping


logger = structlog.get_logger(__name__)


class EntityKind(str, Enum):
    """Entity collections, plus the selection pseudo-entity."""
    TASK = "task"
    PROJECT = "project"
    EVENT = "event"
    BUDGET_CATEGORY = "budget_category"
    BUDGET_EXPENSE = "budget_expense"
    SELECTED_EVENT = "selected_event"


class ChangeAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SELECTED = "selected"


@dataclass(frozen=True)
class PlannerChange:
    """
    One observer notification.

    `entity` is the new version, or the removed one for deletions.
    `derived` marks changes made by the recompute pass rather than by
    the caller; they inherit the origin of the mutation that caused them.
    """
    entity_type: EntityKind
    action: ChangeAction
    entity_id: Optional[str]
    entity: Optional[PlannerEntity]
    origin: str = "local"
    derived: bool = False


ChangeCallback = Callable[[PlannerChange], None]

_COLLECTIONS: dict[EntityKind, tuple[Type[PlannerEntity], StorageKey]] = {
    EntityKind.TASK: (Task, StorageKey.TASKS),
    EntityKind.PROJECT: (Project, StorageKey.PROJECTS),
    EntityKind.EVENT: (Event, StorageKey.EVENTS),
    EntityKind.BUDGET_CATEGORY: (BudgetCategory, StorageKey.BUDGET_CATEGORIES),
    EntityKind.BUDGET_EXPENSE: (BudgetExpense, StorageKey.BUDGET_EXPENSES),
}

_IMMUTABLE_FIELDS = {"id", "created_at"}

# Mirrored expenses reference these ids, so they cannot be deleted
_SEEDED_CATEGORY_IDS = frozenset(c.id for c in DEFAULT_BUDGET_CATEGORIES)

PROJECT_COLORS = ("#EC4899", "#8B5CF6", "#F59E0B", "#10B981", "#06B6D4")

GENERAL_PROJECT_NAME = "General"


def _default_id() -> str:
    return uuid4().hex


class PlannerStore:
    """
    In-memory planner state with write-through persistence.

    Usage:
        planner = await PlannerStore.load(JsonFileStore(data_dir))
        event = planner.add_event(name="Sarah's Wedding", type="wedding")
        planner.add_task(title="Book Venue", project_id=project.id, price=5000)
    """

    def __init__(
        self,
        store: KeyValueStore,
        audit: Optional[AuditLogger] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], Any]] = None,
        settings: Optional[AppSettings] = None,
    ):
        """
        Create an empty planner. Use `PlannerStore.load` to read the
        persisted state.

        Args:
            store: Durable key-value storage
            audit: Audit logger; a private one is created if omitted
            id_factory: Produces unique ids (uuid4 hex by default)
            clock: Returns the current aware datetime
            settings: View limits; read from the environment if omitted
        """
        self._audit = audit or AuditLogger()
        self._writes = OrderedWriteQueue(store, on_error=self._on_write_error)
        self._new_id = id_factory or _default_id
        self._now = clock or utcnow
        self._settings = settings or get_settings().app

        self._items: dict[EntityKind, list[PlannerEntity]] = {
            kind: [] for kind in _COLLECTIONS
        }
        self._selected_event_id: Optional[str] = None
        self._observers: list[ChangeCallback] = []

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    async def load(
        cls,
        store: KeyValueStore,
        audit: Optional[AuditLogger] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], Any]] = None,
        settings: Optional[AppSettings] = None,
    ) -> "PlannerStore":
        """Create a planner and populate it from storage."""
        planner = cls(store, audit=audit, id_factory=id_factory, clock=clock, settings=settings)
        await planner._load()
        return planner

    async def _load(self) -> None:
        kinds = list(_COLLECTIONS)
        raw_values = await asyncio.gather(
            *(self._read(_COLLECTIONS[kind][1]) for kind in kinds),
            self._read(StorageKey.SELECTED_EVENT),
        )

        for kind, raw in zip(kinds, raw_values):
            self._items[kind] = self._parse_collection(kind, raw)

        if not self._items[EntityKind.BUDGET_CATEGORY]:
            seeded = list(DEFAULT_BUDGET_CATEGORIES)
            self._persist(EntityKind.BUDGET_CATEGORY, seeded)
            self._items[EntityKind.BUDGET_CATEGORY] = seeded
            logger.info("budget_categories_seeded", count=len(seeded))

        selected = (raw_values[-1] or "").strip() or None
        if selected is not None and self._find(EntityKind.EVENT, selected) is None:
            logger.warning("stale_selection_dropped", event_id=selected)
            self._writes.remove(StorageKey.SELECTED_EVENT.value)
            selected = None
        self._selected_event_id = selected

        self._recompute(origin="local")
        logger.info(
            "planner_loaded",
            tasks=len(self._items[EntityKind.TASK]),
            projects=len(self._items[EntityKind.PROJECT]),
            events=len(self._items[EntityKind.EVENT]),
            expenses=len(self._items[EntityKind.BUDGET_EXPENSE]),
            selected_event_id=selected,
        )

    async def _read(self, key: StorageKey) -> Optional[str]:
        try:
            return await self._writes.store.get(key.value)
        except StorageError as e:
            logger.error("persistence_read_failed", key=key.value, error=str(e))
            self._audit.log_read_failed(key.value, e)
            return None

    def _parse_collection(self, kind: EntityKind, raw: Optional[str]) -> list[PlannerEntity]:
        if raw is None:
            return []
        key = _COLLECTIONS[kind][1].value
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error("persistence_payload_malformed", key=key, error=str(e))
            self._audit.log_read_failed(key, e)
            return []
        if not isinstance(data, list):
            logger.error("persistence_payload_malformed", key=key, error="expected a list")
            return []

        model = _COLLECTIONS[kind][0]
        items: list[PlannerEntity] = []
        seen: set[str] = set()
        for index, item in enumerate(data):
            try:
                entity = model.model_validate(item)
            except ValidationError as e:
                logger.warning(
                    "persisted_item_skipped",
                    key=key,
                    index=index,
                    errors=e.error_count(),
                )
                continue
            if entity.id in seen:
                logger.warning("persisted_duplicate_id_skipped", key=key, id=entity.id)
                continue
            seen.add(entity.id)
            items.append(entity)
        return items

    # =========================================================================
    # OBSERVERS AND PERSISTENCE
    # =========================================================================

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register an observer. Returns a function that unregisters it.
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    async def flush(self) -> None:
        """Wait for every queued write to reach storage."""
        await self._writes.flush()

    def pending_writes(self) -> list[str]:
        return self._writes.pending_keys()

    def _persist(self, kind: EntityKind, items: Sequence[PlannerEntity]) -> None:
        payload = json.dumps([item.to_storage() for item in items])
        self._writes.set(_COLLECTIONS[kind][1].value, payload)

    def _on_write_error(self, key: str, error: Exception) -> None:
        self._audit.log_write_failed(key, error)

    def _notify(self, changes: list[PlannerChange]) -> None:
        for change in changes:
            for callback in list(self._observers):
                try:
                    callback(change)
                except Exception as e:
                    # An observer must not undo or block the mutation
                    logger.error(
                        "observer_failed",
                        entity_type=change.entity_type.value,
                        action=change.action.value,
                        error=str(e),
                    )

    # =========================================================================
    # MUTATION CORE
    # =========================================================================

    def _commit(
        self,
        updates: dict[EntityKind, list[PlannerEntity]],
        changes: list[PlannerChange],
        origin: str,
    ) -> None:
        for kind, items in updates.items():
            self._persist(kind, items)
        for kind, items in updates.items():
            self._items[kind] = items
        changes = changes + self._recompute(origin)
        self._notify(changes)

    def _recompute(self, origin: str) -> list[PlannerChange]:
        changes: list[PlannerChange] = []

        expenses = self._items[EntityKind.BUDGET_EXPENSE]
        reconciled = derivation.reconcile_task_expenses(self._items[EntityKind.TASK], expenses)
        if reconciled is not expenses:
            added, updated, removed = derivation.diff_by_id(expenses, reconciled)
            self._persist(EntityKind.BUDGET_EXPENSE, reconciled)
            self._items[EntityKind.BUDGET_EXPENSE] = reconciled
            self._audit.log(AuditEventBuilder.mirrored_expenses_reconciled(
                len(added), len(updated), len(removed)
            ))
            changes += _derived_changes(EntityKind.BUDGET_EXPENSE, added, updated, removed, origin)

        categories = self._items[EntityKind.BUDGET_CATEGORY]
        totals = derivation.aggregate_category_spent(categories, self._items[EntityKind.BUDGET_EXPENSE])
        if totals is not categories:
            _, updated, _ = derivation.diff_by_id(categories, totals)
            self._persist(EntityKind.BUDGET_CATEGORY, totals)
            self._items[EntityKind.BUDGET_CATEGORY] = totals
            self._audit.log(AuditEventBuilder.category_totals_updated([c.id for c in updated]))
            changes += _derived_changes(EntityKind.BUDGET_CATEGORY, [], updated, [], origin)

        return changes

    def _build(self, kind: EntityKind, data: dict[str, Any]) -> PlannerEntity:
        model = _COLLECTIONS[kind][0]
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PlannerValidationError(kind.value, str(e), e.errors()) from e

    def _insert(self, kind: EntityKind, entity: PlannerEntity, origin: str) -> PlannerEntity:
        items = [*self._items[kind], entity]
        change = PlannerChange(kind, ChangeAction.CREATED, entity.id, entity, origin)
        self._commit({kind: items}, [change], origin)
        self._audit.log(AuditEventBuilder.entity_created(kind.value, entity.id, origin))
        return entity

    def _create(self, kind: EntityKind, fields: dict[str, Any], **generated: Any) -> PlannerEntity:
        data = _normalize_fields(_COLLECTIONS[kind][0], fields)
        for name in _IMMUTABLE_FIELDS:
            data.pop(name, None)
        data.update(generated)
        data["id"] = self._new_id()
        if "created_at" in _COLLECTIONS[kind][0].model_fields:
            data["created_at"] = self._now()
        return self._insert(kind, self._build(kind, data), origin="local")

    def _replace(
        self,
        kind: EntityKind,
        current: PlannerEntity,
        updated: PlannerEntity,
        origin: str,
    ) -> PlannerEntity:
        if updated == current:
            return current
        items = [updated if item.id == current.id else item for item in self._items[kind]]
        change = PlannerChange(kind, ChangeAction.UPDATED, updated.id, updated, origin)
        self._commit({kind: items}, [change], origin)
        self._audit.log(AuditEventBuilder.entity_updated(
            kind.value, updated.id, _changed_fields(current, updated), origin
        ))
        return updated

    def _update(
        self,
        kind: EntityKind,
        entity_id: str,
        changes: dict[str, Any],
    ) -> Optional[PlannerEntity]:
        current = self._find(kind, entity_id)
        if current is None:
            logger.warning("update_target_missing", entity_type=kind.value, id=entity_id)
            return None
        data = current.model_dump()
        data.update(changes)
        for name in _IMMUTABLE_FIELDS:
            if name in data:
                data[name] = getattr(current, name)
        return self._replace(kind, current, self._build(kind, data), origin="local")

    def _delete(
        self,
        kind: EntityKind,
        entity_id: str,
        extra_updates: Optional[dict[EntityKind, list[PlannerEntity]]] = None,
        extra_changes: Optional[list[PlannerChange]] = None,
    ) -> bool:
        current = self._find(kind, entity_id)
        if current is None:
            return False
        items = [item for item in self._items[kind] if item.id != entity_id]
        change = PlannerChange(kind, ChangeAction.DELETED, entity_id, current, "local")
        updates = {kind: items, **(extra_updates or {})}
        self._commit(updates, [change, *(extra_changes or [])], "local")
        self._audit.log(AuditEventBuilder.entity_deleted(kind.value, entity_id))
        return True

    def _find(self, kind: EntityKind, entity_id: Optional[str]) -> Optional[PlannerEntity]:
        if entity_id is None:
            return None
        for item in self._items[kind]:
            if item.id == entity_id:
                return item
        return None

    # =========================================================================
    # TASKS
    # =========================================================================

    def add_task(self, **fields: Any) -> Task:
        """
        Create a task. `title` and `project_id` are required.

        Raises:
            PlannerValidationError: If a field is missing or invalid
        """
        data = _normalize_fields(Task, fields)
        data.pop("completed_at", None)
        status = _parse_status(data.get("status", TaskStatus.TODO))
        data["status"] = status
        completed_at = self._now() if status == TaskStatus.COMPLETED else None
        if self._find(EntityKind.PROJECT, data.get("project_id")) is None:
            logger.warning("task_project_missing", project_id=data.get("project_id"))
        return self._create(EntityKind.TASK, data, completed_at=completed_at)

    def update_task(self, task_id: str, **changes: Any) -> Optional[Task]:
        """
        Merge changes into a task. Returns None for an unknown id.

        completed_at follows status: set on entering completed, cleared
        on leaving it.
        """
        current = self._find(EntityKind.TASK, task_id)
        if current is None:
            logger.warning("update_target_missing", entity_type="task", id=task_id)
            return None
        data = _normalize_fields(Task, changes)
        data.pop("completed_at", None)
        if "status" in data:
            status = _parse_status(data["status"])
            data["status"] = status
            if status != current.status:
                data["completed_at"] = self._now() if status == TaskStatus.COMPLETED else None
        return self._update(EntityKind.TASK, task_id, data)

    def toggle_task_status(self, task_id: str) -> Optional[Task]:
        """Advance todo -> in_progress -> completed -> todo."""
        current = self._find(EntityKind.TASK, task_id)
        if current is None:
            return None
        return self.update_task(task_id, status=current.status.next())

    def delete_task(self, task_id: str) -> bool:
        return self._delete(EntityKind.TASK, task_id)

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def add_project(self, **fields: Any) -> Project:
        return self._create(EntityKind.PROJECT, fields)

    def update_project(self, project_id: str, **changes: Any) -> Optional[Project]:
        return self._update(EntityKind.PROJECT, project_id, _normalize_fields(Project, changes))

    def delete_project(self, project_id: str) -> bool:
        """Remove a project. Its tasks are kept."""
        return self._delete(EntityKind.PROJECT, project_id)

    def ensure_event_project(self) -> Project:
        """
        A project to file new tasks under.

        The selected event's first project, or a new one named after the
        event. With no selection, the first unscoped project, or a new
        "General" project.
        """
        event = self.selected_event
        if event is not None:
            for project in self.projects:
                if project.event_id == event.id:
                    return project
            return self.add_project(name=event.name, color=event.color, event_id=event.id)

        for project in self.projects:
            if project.event_id is None:
                return project
        color = PROJECT_COLORS[len(self.projects) % len(PROJECT_COLORS)]
        return self.add_project(name=GENERAL_PROJECT_NAME, color=color)

    # =========================================================================
    # EVENTS AND SELECTION
    # =========================================================================

    def add_event(self, **fields: Any) -> Event:
        """Create an event and select it."""
        event = self._create(EntityKind.EVENT, fields)
        self._set_selection(event.id, origin="local")
        return event

    def update_event(self, event_id: str, **changes: Any) -> Optional[Event]:
        return self._update(EntityKind.EVENT, event_id, _normalize_fields(Event, changes))

    def delete_event(self, event_id: str) -> bool:
        """
        Remove an event. Clears the selection if it was selected; its
        projects keep their event_id.
        """
        deleted = self._delete(EntityKind.EVENT, event_id)
        if deleted and self._selected_event_id == event_id:
            self._set_selection(None, origin="local")
        return deleted

    def select_event(self, event_id: Optional[str]) -> bool:
        """
        Select an event, or clear the selection with None.

        Returns False (and changes nothing) for an unknown event id.
        """
        if event_id is not None and self._find(EntityKind.EVENT, event_id) is None:
            logger.warning("select_unknown_event", event_id=event_id)
            return False
        self._set_selection(event_id, origin="local")
        return True

    def _set_selection(self, event_id: Optional[str], origin: str) -> None:
        if event_id == self._selected_event_id:
            return
        key = StorageKey.SELECTED_EVENT.value
        if event_id is None:
            self._writes.remove(key)
        else:
            self._writes.set(key, event_id)
        self._selected_event_id = event_id
        self._audit.log(AuditEventBuilder.event_selected(event_id))
        self._notify([PlannerChange(
            EntityKind.SELECTED_EVENT,
            ChangeAction.SELECTED,
            event_id,
            self._find(EntityKind.EVENT, event_id),
            origin,
        )])

    # =========================================================================
    # BUDGET
    # =========================================================================

    def add_budget_category(self, **fields: Any) -> BudgetCategory:
        """Create a category. spent always starts from the expenses."""
        data = _normalize_fields(BudgetCategory, fields)
        data.pop("spent", None)
        return self._create(EntityKind.BUDGET_CATEGORY, data)

    def update_budget_category(self, category_id: str, **changes: Any) -> Optional[BudgetCategory]:
        """Update name, icon, color or allocated. spent cannot be set."""
        data = _normalize_fields(BudgetCategory, changes)
        data.pop("spent", None)
        return self._update(EntityKind.BUDGET_CATEGORY, category_id, data)

    def delete_budget_category(self, category_id: str) -> bool:
        """
        Remove a user-added category, moving its expenses to the default
        category. The seeded categories cannot be deleted.
        """
        if category_id in _SEEDED_CATEGORY_IDS:
            logger.warning("seeded_category_delete_refused", category_id=category_id)
            return False
        if self._find(EntityKind.BUDGET_CATEGORY, category_id) is None:
            return False

        moved: list[PlannerChange] = []
        expenses: list[PlannerEntity] = []
        for expense in self._items[EntityKind.BUDGET_EXPENSE]:
            if expense.category_id == category_id:
                expense = expense.model_copy(update={"category_id": DEFAULT_CATEGORY_ID})
                moved.append(PlannerChange(
                    EntityKind.BUDGET_EXPENSE, ChangeAction.UPDATED, expense.id, expense
                ))
            expenses.append(expense)

        extra = {EntityKind.BUDGET_EXPENSE: expenses} if moved else None
        return self._delete(
            EntityKind.BUDGET_CATEGORY, category_id, extra_updates=extra, extra_changes=moved
        )

    def add_budget_expense(self, **fields: Any) -> BudgetExpense:
        """
        Create a free-standing expense. An unknown category falls back
        to the default one; `date` defaults to now.
        """
        data = _normalize_fields(BudgetExpense, fields)
        data["category_id"] = self._resolve_category(data.get("category_id"))
        data.setdefault("date", self._now())
        return self._create(EntityKind.BUDGET_EXPENSE, data)

    def update_budget_expense(self, expense_id: str, **changes: Any) -> Optional[BudgetExpense]:
        """Update a free-standing expense. Mirrored expenses are read-only."""
        current = self._find(EntityKind.BUDGET_EXPENSE, expense_id)
        if current is not None and current.is_task_mirror:
            logger.warning("mirrored_expense_is_read_only", id=expense_id)
            return None
        data = _normalize_fields(BudgetExpense, changes)
        if "category_id" in data:
            data["category_id"] = self._resolve_category(data["category_id"])
        return self._update(EntityKind.BUDGET_EXPENSE, expense_id, data)

    def delete_budget_expense(self, expense_id: str) -> bool:
        """Delete a free-standing expense. Mirrored expenses are read-only."""
        current = self._find(EntityKind.BUDGET_EXPENSE, expense_id)
        if current is not None and current.is_task_mirror:
            logger.warning("mirrored_expense_is_read_only", id=expense_id)
            return False
        return self._delete(EntityKind.BUDGET_EXPENSE, expense_id)

    def _resolve_category(self, category_id: Optional[str]) -> str:
        if category_id and self._find(EntityKind.BUDGET_CATEGORY, category_id) is not None:
            return category_id
        if category_id:
            logger.info("unknown_category_defaulted", category_id=category_id)
        return DEFAULT_CATEGORY_ID

    # =========================================================================
    # REMOTE MERGE
    # =========================================================================

    def merge_remote(self, entity: PlannerEntity) -> Optional[PlannerEntity]:
        """
        Apply a record received from the remote backend.

        Inserts unknown ids and replaces known ones (last write wins),
        through the same path as local mutations, so every derivation rule
        applies. Remote inserts never change the selection. Mirrored
        expenses are derived locally and ignored here.
        """
        kind = _kind_of(entity)
        if isinstance(entity, BudgetExpense):
            if entity.is_task_mirror:
                return None
            category_id = self._resolve_category(entity.category_id)
            if category_id != entity.category_id:
                entity = entity.model_copy(update={"category_id": category_id})

        current = self._find(kind, entity.id)
        if current is None:
            merged = self._insert(kind, entity, origin="remote")
            self._audit.log(AuditEventBuilder.remote_merge_applied(kind.value, entity.id, "insert"))
            return merged

        if isinstance(entity, BudgetCategory):
            entity = entity.model_copy(update={"spent": current.spent})
        merged = self._replace(kind, current, entity, origin="remote")
        if merged is entity:
            self._audit.log(AuditEventBuilder.remote_merge_applied(kind.value, entity.id, "update"))
        return merged

    # =========================================================================
    # READ API
    # =========================================================================

    @property
    def tasks(self) -> list[Task]:
        return list(self._items[EntityKind.TASK])

    @property
    def projects(self) -> list[Project]:
        return list(self._items[EntityKind.PROJECT])

    @property
    def events(self) -> list[Event]:
        return list(self._items[EntityKind.EVENT])

    @property
    def budget_categories(self) -> list[BudgetCategory]:
        return list(self._items[EntityKind.BUDGET_CATEGORY])

    @property
    def budget_expenses(self) -> list[BudgetExpense]:
        return list(self._items[EntityKind.BUDGET_EXPENSE])

    @property
    def selected_event_id(self) -> Optional[str]:
        return self._selected_event_id

    @property
    def selected_event(self) -> Optional[Event]:
        return self._find(EntityKind.EVENT, self._selected_event_id)

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._find(EntityKind.TASK, task_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._find(EntityKind.PROJECT, project_id)

    def get_event(self, event_id: str) -> Optional[Event]:
        return self._find(EntityKind.EVENT, event_id)

    def get_budget_category(self, category_id: str) -> Optional[BudgetCategory]:
        return self._find(EntityKind.BUDGET_CATEGORY, category_id)

    def get_budget_expense(self, expense_id: str) -> Optional[BudgetExpense]:
        return self._find(EntityKind.BUDGET_EXPENSE, expense_id)

    def tasks_by_project(self, project_id: str) -> list[Task]:
        return [t for t in self._items[EntityKind.TASK] if t.project_id == project_id]

    def shared_tasks(self) -> list[Task]:
        """Tasks in projects shared with at least one other user."""
        shared = {p.id for p in self._items[EntityKind.PROJECT] if p.is_shared}
        return [t for t in self._items[EntityKind.TASK] if t.project_id in shared]

    # Event-scoped views ------------------------------------------------------

    def projects_for_selected_event(self) -> list[Project]:
        return scoping.projects_for_event(self.projects, self._selected_event_id)

    def tasks_for_selected_event(self) -> list[Task]:
        return scoping.tasks_for_event(self.tasks, self.projects, self._selected_event_id)

    def expenses_for_selected_event(self) -> list[BudgetExpense]:
        return scoping.expenses_for_event(
            self.budget_expenses, self.tasks, self.projects, self._selected_event_id
        )

    def task_stats(self) -> TaskStats:
        return derivation.compute_task_stats(self.tasks_for_selected_event())

    def budget_totals(self) -> BudgetTotals:
        return derivation.compute_budget_totals(
            self.budget_categories,
            self.tasks_for_selected_event(),
            self.expenses_for_selected_event(),
        )

    def upcoming_tasks(self, limit: Optional[int] = None) -> list[Task]:
        return derivation.upcoming_tasks(
            self.tasks_for_selected_event(), limit or self._settings.upcoming_task_limit
        )

    def recent_tasks(self, limit: Optional[int] = None) -> list[Task]:
        return derivation.recent_tasks(
            self.tasks_for_selected_event(), limit or self._settings.recent_task_limit
        )

    def tasks_by_status(self) -> dict[TaskStatus, list[Task]]:
        return derivation.group_tasks_by_status(self.tasks_for_selected_event())

    def tasks_by_priority(self) -> dict[TaskPriority, list[Task]]:
        return derivation.group_tasks_by_priority(self.tasks_for_selected_event())

    def tasks_with_prices(self) -> list[Task]:
        return derivation.tasks_with_prices(self.tasks_for_selected_event())

    def expenses_by_category(self) -> dict[str, list[BudgetExpense]]:
        return derivation.expenses_by_category(
            self.budget_categories, self.expenses_for_selected_event()
        )

    def task_page(
        self,
        view: TaskListView = TaskListView.ALL,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> TaskPage:
        filtered = derivation.filter_tasks(self.tasks_for_selected_event(), view)
        return derivation.paginate(filtered, page, page_size or self._settings.task_page_size)


# =============================================================================
# HELPERS
# =============================================================================

def _kind_of(entity: PlannerEntity) -> EntityKind:
    for kind, (model, _) in _COLLECTIONS.items():
        if isinstance(entity, model):
            return kind
    raise TypeError(f"Not a planner entity: {type(entity).__name__}")


def _normalize_fields(model: Type[PlannerEntity], fields: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases to field names and reject unknown fields."""
    names: dict[str, str] = {}
    for name in model.model_fields:
        names[name] = name
        names[to_camel(name)] = name
    normalized = {}
    for key, value in fields.items():
        if key not in names:
            raise PlannerValidationError(
                model.__name__.lower(), f"Unknown field for {model.__name__}: {key}"
            )
        normalized[names[key]] = value
    return normalized


def _parse_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as e:
        raise PlannerValidationError("task", f"Invalid task status: {value!r}") from e


def _changed_fields(before: PlannerEntity, after: PlannerEntity) -> list[str]:
    return [
        name for name in type(before).model_fields
        if getattr(before, name) != getattr(after, name)
    ]


def _derived_changes(
    kind: EntityKind,
    added: list[PlannerEntity],
    updated: list[PlannerEntity],
    removed: list[PlannerEntity],
    origin: str,
) -> list[PlannerChange]:
    return (
        [PlannerChange(kind, ChangeAction.CREATED, e.id, e, origin, True) for e in added]
        + [PlannerChange(kind, ChangeAction.UPDATED, e.id, e, origin, True) for e in updated]
        + [PlannerChange(kind, ChangeAction.DELETED, e.id, e, origin, True) for e in removed]
    )


class PlannerValidationError(ValueError):
    """Fields passed to the repository do not form a valid entity."""

    def __init__(self, entity_type: str, message: str, errors: Optional[list] = None):
        self.entity_type = entity_type
        self.errors = errors or []
        super().__init__(message)
