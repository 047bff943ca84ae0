"""
Row mappings between planner entities and remote tables.

Column names match the entity field names, so mapping is a matter of
picking the columns a table has and adding the owner column. Fields the
backend has no column for (e.g. Task.assigned_to) stay local.
"""

from dataclasses import dataclass
from typing import Any, Optional, Type

from pydantic import TypeAdapter

from eventplanner.models.planner import (
    BudgetCategory,
    BudgetExpense,
    Event,
    PlannerEntity,
    Project,
    Task,
)


@dataclass(frozen=True)
class TableSpec:
    """How one entity type is stored remotely."""
    entity_type: str
    table: str
    model: Type[PlannerEntity]
    columns: tuple[str, ...]
    # Tasks carry no owner column; they are visible through their project
    owned: bool = True


EVENTS_TABLE = TableSpec(
    entity_type="event",
    table="events",
    model=Event,
    columns=("id", "name", "type", "color", "budget", "created_at"),
)

PROJECTS_TABLE = TableSpec(
    entity_type="project",
    table="projects",
    model=Project,
    columns=("id", "name", "color", "icon", "event_id", "shared_with", "created_at"),
)

TASKS_TABLE = TableSpec(
    entity_type="task",
    table="tasks",
    model=Task,
    columns=(
        "id", "project_id", "title", "description", "status", "priority",
        "due_date", "price", "completed_at", "created_at",
    ),
    owned=False,
)

BUDGET_CATEGORIES_TABLE = TableSpec(
    entity_type="budget_category",
    table="budget_categories",
    model=BudgetCategory,
    columns=("id", "name", "icon", "allocated", "spent", "color"),
)

BUDGET_EXPENSES_TABLE = TableSpec(
    entity_type="budget_expense",
    table="budget_expenses",
    model=BudgetExpense,
    columns=(
        "id", "category_id", "title", "amount", "vendor", "date", "notes",
        "is_paid", "created_at",
    ),
)

_READ_ONLY_COLUMNS = {"id", "created_at"}
_ROW_VALUES = TypeAdapter(dict[str, Any])


def entity_to_row(spec: TableSpec, entity: PlannerEntity, user_id: Optional[str]) -> dict[str, Any]:
    """Full insert/upsert row for an entity."""
    data = entity.model_dump(mode="json")
    row = {column: data.get(column) for column in spec.columns}
    if spec.owned:
        row["user_id"] = user_id
    return row


def changes_to_row(spec: TableSpec, changes: dict[str, Any]) -> dict[str, Any]:
    """Partial update row; ids, creation times and unknown fields are dropped."""
    row = {
        key: value
        for key, value in changes.items()
        if key in spec.columns and key not in _READ_ONLY_COLUMNS
    }
    return _ROW_VALUES.dump_python(row, mode="json")


def row_to_entity(spec: TableSpec, row: dict[str, Any]) -> PlannerEntity:
    """
    Entity from a remote row.

    NULL columns are left out so model defaults apply (an absent
    shared_with becomes an empty list, an absent allocation 0).

    Raises:
        pydantic.ValidationError: If the row does not form a valid entity
    """
    data = {
        column: row[column]
        for column in spec.columns
        if row.get(column) is not None
    }
    return spec.model.model_validate(data)
