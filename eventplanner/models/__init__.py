"""
Data Models Package

This package contains all Pydantic models used by the event planner.
Everything the repository stores or derives conforms to these schemas.
"""

from eventplanner.models.planner import (
    DEFAULT_BUDGET_CATEGORIES,
    DEFAULT_CATEGORY_ID,
    EVENT_TYPE_CATALOG,
    TASK_EXPENSE_ID_PREFIX,
    TASK_EXPENSE_TITLE_PREFIX,
    BudgetCategory,
    BudgetExpense,
    BudgetTotals,
    Event,
    EventType,
    EventTypeConfig,
    PlannerEntity,
    Project,
    Task,
    TaskListView,
    TaskPage,
    TaskPriority,
    TaskStats,
    TaskStatus,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from eventplanner.models.templates import (
    SMART_TASK_TEMPLATES,
    SmartTaskTemplate,
    templates_for_event_type,
)
from eventplanner.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Planner entities
    "BudgetCategory",
    "BudgetExpense",
    "Event",
    "PlannerEntity",
    "Project",
    "Task",
    # Enums
    "EventType",
    "TaskListView",
    "TaskPriority",
    "TaskStatus",
    # Catalogues and constants
    "DEFAULT_BUDGET_CATEGORIES",
    "DEFAULT_CATEGORY_ID",
    "EVENT_TYPE_CATALOG",
    "EventTypeConfig",
    "SMART_TASK_TEMPLATES",
    "SmartTaskTemplate",
    "TASK_EXPENSE_ID_PREFIX",
    "TASK_EXPENSE_TITLE_PREFIX",
    "templates_for_event_type",
    "utcnow",
    # Read models
    "BudgetTotals",
    "TaskPage",
    "TaskStats",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
