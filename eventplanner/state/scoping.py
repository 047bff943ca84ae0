"""
Event scoping.

Maps the selected event to the projects, tasks and expenses in view.
With no event selected everything is in view.
"""

from typing import Optional, Sequence

from eventplanner.models.planner import BudgetExpense, Project, Task


def projects_for_event(
    projects: Sequence[Project],
    event_id: Optional[str],
) -> list[Project]:
    """Projects linked to the event; all projects when event_id is None."""
    if event_id is None:
        return list(projects)
    return [p for p in projects if p.event_id == event_id]


def tasks_for_event(
    tasks: Sequence[Task],
    projects: Sequence[Project],
    event_id: Optional[str],
) -> list[Task]:
    """Tasks whose project belongs to the event; all tasks when event_id is None."""
    if event_id is None:
        return list(tasks)
    project_ids = {p.id for p in projects_for_event(projects, event_id)}
    return [t for t in tasks if t.project_id in project_ids]


def expenses_for_event(
    expenses: Sequence[BudgetExpense],
    tasks: Sequence[Task],
    projects: Sequence[Project],
    event_id: Optional[str],
) -> list[BudgetExpense]:
    """
    Expenses in view for the event.

    Mirrors follow their task's scope. Free-standing expenses carry no
    event link and are always in view.
    """
    if event_id is None:
        return list(expenses)
    task_ids = {t.id for t in tasks_for_event(tasks, projects, event_id)}
    return [
        e for e in expenses
        if not e.is_task_mirror or e.source_task_id in task_ids
    ]
