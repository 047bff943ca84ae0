"""
Core Data Models for Event Planner

These models define the schemas for every entity the planner keeps:
tasks, projects, events, budget categories and budget expenses.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip through the local JSON store unchanged (camelCase keys)
3. Be immutable values - the repository replaces them, never edits them

DESIGN DECISION: Entities are frozen Pydantic v2 models.
Structural equality of frozen values is what the derivation engine uses
for change detection, so a "no-op" recompute never triggers a write.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime) -> datetime:
    """Naive timestamps are read as UTC so they sort against aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Timestamp = Annotated[datetime, AfterValidator(_ensure_aware)]


# Mirrored expenses reserve this id scheme and title prefix
TASK_EXPENSE_ID_PREFIX = "task-"
TASK_EXPENSE_TITLE_PREFIX = "Task: "

# Referential fallback for expenses whose category cannot be resolved
DEFAULT_CATEGORY_ID = "venue"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TaskStatus(str, Enum):
    """
    Task status.

    Toggling cycles todo -> in_progress -> completed -> todo.
    """
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def next(self) -> "TaskStatus":
        if self is TaskStatus.TODO:
            return TaskStatus.IN_PROGRESS
        if self is TaskStatus.IN_PROGRESS:
            return TaskStatus.COMPLETED
        return TaskStatus.TODO


class TaskPriority(str, Enum):
    """Task priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EventType(str, Enum):
    """Kinds of occasion an event can be."""
    WEDDING = "wedding"
    BIRTHDAY = "birthday"
    CORPORATE = "corporate"
    ANNIVERSARY = "anniversary"
    GRADUATION = "graduation"
    BABY_SHOWER = "baby_shower"
    CUSTOM = "custom"


class TaskListView(str, Enum):
    """Filter chips of the task list."""
    ALL = "all"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PRICED = "priced"
    UNPRICED = "unpriced"


_ENTITY_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    str_strip_whitespace=True,
    extra="ignore",
)


class PlannerEntity(BaseModel):
    """Base for every persisted entity."""

    model_config = _ENTITY_CONFIG

    id: str = Field(
        ...,
        min_length=1,
        description="Unique, stable identifier"
    )

    def to_storage(self) -> dict:
        """Serialize to the JSON shape kept in the local store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Task(PlannerEntity):
    """
    A unit of planning work.

    A task with a positive price is mirrored into the budget as an
    expense with id "task-<task id>".
    """

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Task title"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
    )
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    project_id: str = Field(
        ...,
        min_length=1,
        description="Project this task belongs to"
    )
    due_date: Optional[Timestamp] = None
    price: Optional[float] = Field(
        default=None,
        ge=0,
        description="Expected cost of the task"
    )
    created_at: Timestamp
    completed_at: Optional[Timestamp] = Field(
        default=None,
        description="Set only while status is completed"
    )
    assigned_to: list[str] = Field(default_factory=list)

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.price > 0

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class Project(PlannerEntity):
    """
    A grouping of tasks.

    Projects without an event_id are unscoped: they show up only when no
    event is selected.
    """

    name: str = Field(..., min_length=1, max_length=200)
    color: str = "#94A3B8"
    icon: str = "list"
    created_at: Timestamp
    shared_with: list[str] = Field(default_factory=list)
    event_id: Optional[str] = None

    @property
    def is_shared(self) -> bool:
        return len(self.shared_with) > 0


class Event(PlannerEntity):
    """A top-level planning occasion (e.g. a wedding)."""

    name: str = Field(..., min_length=1, max_length=200)
    type: EventType = EventType.CUSTOM
    color: str = "#94A3B8"
    created_at: Timestamp
    budget: Optional[float] = Field(default=None, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_is_custom(cls, v):
        if isinstance(v, EventType):
            return v
        try:
            return EventType(v)
        except ValueError:
            return EventType.CUSTOM


class BudgetCategory(PlannerEntity):
    """
    A budget bucket.

    `spent` is derived from the expenses in the category and is never
    edited by hand.
    """

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = "wallet"
    allocated: float = Field(default=0.0, ge=0)
    spent: float = Field(default=0.0, ge=0)
    color: str = "#94A3B8"

    @property
    def remaining(self) -> float:
        return self.allocated - self.spent

    @property
    def percent_used(self) -> float:
        if self.allocated <= 0:
            return 0.0
        return self.spent / self.allocated * 100


class BudgetExpense(PlannerEntity):
    """
    A single expense.

    Either entered by the user, or mirrored from a priced task. Mirrors
    are recognised by their reserved id prefix.
    """

    category_id: str = Field(default=DEFAULT_CATEGORY_ID, min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    vendor: Optional[str] = Field(default=None, max_length=200)
    date: Timestamp
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_paid: bool = False
    created_at: Timestamp

    @field_validator("vendor", "notes")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def is_task_mirror(self) -> bool:
        return self.id.startswith(TASK_EXPENSE_ID_PREFIX)

    @property
    def source_task_id(self) -> Optional[str]:
        if not self.is_task_mirror:
            return None
        return self.id[len(TASK_EXPENSE_ID_PREFIX):]


# =============================================================================
# SEED DATA
# =============================================================================


def _seed_category(category_id: str, name: str, icon: str, color: str) -> BudgetCategory:
    return BudgetCategory(id=category_id, name=name, icon=icon, color=color)


DEFAULT_BUDGET_CATEGORIES: tuple[BudgetCategory, ...] = (
    _seed_category("venue", "Venue", "building", "#EC4899"),
    _seed_category("catering", "Catering", "utensils", "#F59E0B"),
    _seed_category("photography", "Photography", "camera", "#8B5CF6"),
    _seed_category("makeup", "Makeup & Beauty", "sparkles", "#10B981"),
    _seed_category("flowers", "Flowers & Decor", "flower", "#06B6D4"),
    _seed_category("music", "Music & Entertainment", "music", "#F97316"),
    _seed_category("attire", "Attire", "shirt", "#EF4444"),
    _seed_category("transportation", "Transportation", "car", "#6366F1"),
)


class EventTypeConfig(BaseModel):
    """Display defaults for an event type."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    name: str
    icon: str
    color: str
    description: str


EVENT_TYPE_CATALOG: dict[EventType, EventTypeConfig] = {
    config.type: config
    for config in (
        EventTypeConfig(
            type=EventType.WEDDING, name="Wedding", icon="heart",
            color="#EC4899", description="Plan your perfect wedding day",
        ),
        EventTypeConfig(
            type=EventType.BIRTHDAY, name="Birthday Party", icon="cake",
            color="#F59E0B", description="Celebrate special birthdays",
        ),
        EventTypeConfig(
            type=EventType.CORPORATE, name="Corporate Event", icon="briefcase",
            color="#6366F1", description="Organize business events and meetings",
        ),
        EventTypeConfig(
            type=EventType.ANNIVERSARY, name="Anniversary", icon="ring",
            color="#8B5CF6", description="Celebrate milestones and anniversaries",
        ),
        EventTypeConfig(
            type=EventType.GRADUATION, name="Graduation", icon="graduation-cap",
            color="#10B981", description="Plan graduation ceremonies and parties",
        ),
        EventTypeConfig(
            type=EventType.BABY_SHOWER, name="Baby Shower", icon="baby",
            color="#06B6D4", description="Celebrate new arrivals",
        ),
        EventTypeConfig(
            type=EventType.CUSTOM, name="Custom Event", icon="calendar",
            color="#94A3B8", description="Create your own event type",
        ),
    )
}


# =============================================================================
# DERIVED READ MODELS (computed on read, never persisted)
# =============================================================================

class TaskStats(BaseModel):
    """Counts and totals over a set of tasks."""

    total: int = Field(ge=0)
    completed: int = Field(ge=0)
    in_progress: int = Field(ge=0)
    todo: int = Field(ge=0)
    high_priority: int = Field(ge=0)
    medium_priority: int = Field(ge=0)
    low_priority: int = Field(ge=0)
    total_price: float = 0.0
    completed_price: float = 0.0
    percent_complete: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="completed / total * 100, 0 for an empty set"
    )


class BudgetTotals(BaseModel):
    """
    Budget overview.

    `allocated` is the effective budget: the sum of category allocations
    when any category has one, otherwise the sum of task prices.
    """

    allocated: float
    spent: float
    remaining: float
    task_based_total: float
    percent_spent: float
    uses_task_fallback: bool = False


class TaskPage(BaseModel):
    """One page of a task list."""

    items: list[Task] = Field(default_factory=list)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_items: int = Field(ge=0)
    total_pages: int = Field(ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'possible_duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a draft before it becomes an entity.

    Errors always block. Warnings (similar titles) block until the
    caller confirms.
    """

    is_valid: bool = Field(
        ...,
        description="No error-level issue was found"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]

    @property
    def requires_confirmation(self) -> bool:
        return self.is_valid and bool(self.warnings)

    def can_proceed(self, confirmed: bool = False) -> bool:
        if not self.is_valid:
            return False
        return confirmed or not self.warnings
