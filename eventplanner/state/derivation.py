"""
Derivation Engine

Pure functions that compute everything the planner does not store by
hand: task-mirrored expenses, category spent totals, statistics and the
filtered or paginated views the screens show.

DESIGN DECISION: Nothing in this module mutates its inputs or touches
storage. Recompute functions return the *same list object* when nothing
changed, so callers can detect a no-op with `is` and skip the write and
the notification.

MIRRORING RULES:
- Every task with price > 0 has exactly one expense "task-<task id>"
- The mirror follows the task: amount, paid flag, category and title
- A mirror disappears with its task, or when the task loses its price
"""

import math
import re
from typing import Iterable, Optional, Sequence, TypeVar

from eventplanner.models.planner import (
    DEFAULT_CATEGORY_ID,
    TASK_EXPENSE_ID_PREFIX,
    TASK_EXPENSE_TITLE_PREFIX,
    BudgetCategory,
    BudgetExpense,
    BudgetTotals,
    PlannerEntity,
    Task,
    TaskListView,
    TaskPage,
    TaskPriority,
    TaskStats,
    TaskStatus,
)


EntityT = TypeVar("EntityT", bound=PlannerEntity)


# =============================================================================
# CATEGORY MATCHING
# =============================================================================

# First match wins, so the order matters
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("venue", ("venue", "location")),
    ("catering", ("cater", "food", "meal")),
    ("photography", ("photo", "video", "camera")),
    ("makeup", ("makeup", "beauty", "hair", "make up")),
    ("flowers", ("flower", "decor", "decoration")),
    ("music", ("music", "dj", "entertainment")),
    ("attire", ("dress", "suit", "attire", "outfit")),
    ("transportation", ("car", "transport", "limo")),
)


def category_from_title(title: str) -> str:
    """
    Budget category for a task title.

    Case-insensitive substring match against the keyword table.
    Titles that match nothing land in the venue category.
    """
    lowered = title.lower()
    for category_id, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category_id
    return DEFAULT_CATEGORY_ID


# =============================================================================
# TASK -> EXPENSE MIRRORING
# =============================================================================

def mirror_expense_id(task_id: str) -> str:
    return f"{TASK_EXPENSE_ID_PREFIX}{task_id}"


def build_mirrored_expense(task: Task) -> BudgetExpense:
    """The expense a priced task should have right now."""
    return BudgetExpense(
        id=mirror_expense_id(task.id),
        category_id=category_from_title(task.title),
        title=f"{TASK_EXPENSE_TITLE_PREFIX}{task.title}",
        amount=task.price,
        date=task.created_at,
        is_paid=task.is_completed,
        created_at=task.created_at,
    )


def _refresh_mirror(expense: BudgetExpense, task: Task) -> BudgetExpense:
    expected = build_mirrored_expense(task)
    refreshed = expense.model_copy(update={
        "amount": expected.amount,
        "is_paid": expected.is_paid,
        "category_id": expected.category_id,
        "title": expected.title,
    })
    return expense if refreshed == expense else refreshed


def reconcile_task_expenses(
    tasks: Sequence[Task],
    expenses: list[BudgetExpense],
) -> list[BudgetExpense]:
    """
    Bring mirrored expenses in line with the tasks.

    Free-standing expenses pass through untouched and keep their order.
    Existing mirrors are refreshed in place, stale ones are dropped and
    missing ones are appended.

    Returns:
        `expenses` itself when nothing changed, otherwise a new list
    """
    priced = {task.id: task for task in tasks if task.has_price}
    seen: set[str] = set()
    result: list[BudgetExpense] = []

    for expense in expenses:
        if not expense.is_task_mirror:
            result.append(expense)
            continue
        task = priced.get(expense.source_task_id)
        if task is None or expense.id in seen:
            continue
        seen.add(expense.id)
        result.append(_refresh_mirror(expense, task))

    for task in tasks:
        if task.has_price and mirror_expense_id(task.id) not in seen:
            seen.add(mirror_expense_id(task.id))
            result.append(build_mirrored_expense(task))

    if _same_items(result, expenses):
        return expenses
    return result


# =============================================================================
# CATEGORY SPENT AGGREGATION
# =============================================================================

def aggregate_category_spent(
    categories: list[BudgetCategory],
    expenses: Iterable[BudgetExpense],
) -> list[BudgetCategory]:
    """
    Recompute every category's spent total from scratch.

    Returns `categories` itself when no total moved.
    """
    totals: dict[str, float] = {}
    for expense in expenses:
        totals[expense.category_id] = totals.get(expense.category_id, 0.0) + expense.amount

    result = []
    for category in categories:
        spent = totals.get(category.id, 0.0)
        if category.spent == spent:
            result.append(category)
        else:
            result.append(category.model_copy(update={"spent": spent}))

    if _same_items(result, categories):
        return categories
    return result


def diff_by_id(
    before: Sequence[EntityT],
    after: Sequence[EntityT],
) -> tuple[list[EntityT], list[EntityT], list[EntityT]]:
    """
    Compare two versions of a collection.

    Returns:
        (added, updated, removed) where updated holds the new versions
    """
    old = {item.id: item for item in before}
    new = {item.id: item for item in after}
    added = [item for item_id, item in new.items() if item_id not in old]
    updated = [
        item for item_id, item in new.items()
        if item_id in old and old[item_id] != item
    ]
    removed = [item for item_id, item in old.items() if item_id not in new]
    return added, updated, removed


def _same_items(a: Sequence, b: Sequence) -> bool:
    return len(a) == len(b) and all(x is y or x == y for x, y in zip(a, b))


# =============================================================================
# STATISTICS
# =============================================================================

def compute_task_stats(tasks: Sequence[Task]) -> TaskStats:
    """Counts by status and priority, price totals, completion percentage."""
    total = len(tasks)
    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    return TaskStats(
        total=total,
        completed=len(completed),
        in_progress=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        todo=sum(1 for t in tasks if t.status == TaskStatus.TODO),
        high_priority=sum(1 for t in tasks if t.priority == TaskPriority.HIGH),
        medium_priority=sum(1 for t in tasks if t.priority == TaskPriority.MEDIUM),
        low_priority=sum(1 for t in tasks if t.priority == TaskPriority.LOW),
        total_price=sum(t.price or 0.0 for t in tasks),
        completed_price=sum(t.price or 0.0 for t in completed),
        percent_complete=(len(completed) / total * 100) if total else 0.0,
    )


def compute_budget_totals(
    categories: Sequence[BudgetCategory],
    tasks: Sequence[Task],
    expenses: Optional[Sequence[BudgetExpense]] = None,
) -> BudgetTotals:
    """
    Budget overview.

    The effective budget is the sum of category allocations. While no
    category has an allocation, the sum of task prices stands in for it.
    Setting the first allocation therefore switches the basis at once,
    and percent_spent can jump.

    When `expenses` is given, spent is summed from those expenses (only
    the ones filed under a known category) so that it covers the same
    scope as `tasks`. Otherwise the categories' spent totals are used.
    """
    task_based_total = sum(t.price or 0.0 for t in tasks)
    allocated = sum(c.allocated for c in categories)
    if expenses is None:
        spent = sum(c.spent for c in categories)
    else:
        known = {c.id for c in categories}
        spent = sum(e.amount for e in expenses if e.category_id in known)

    uses_task_fallback = allocated <= 0
    effective = task_based_total if uses_task_fallback else allocated

    return BudgetTotals(
        allocated=effective,
        spent=spent,
        remaining=effective - spent,
        task_based_total=task_based_total,
        percent_spent=(spent / effective * 100) if effective > 0 else 0.0,
        uses_task_fallback=uses_task_fallback,
    )


# =============================================================================
# VIEWS
# =============================================================================

def upcoming_tasks(tasks: Sequence[Task], limit: int = 5) -> list[Task]:
    """Open tasks with a due date, soonest first."""
    dated = [t for t in tasks if t.due_date is not None and not t.is_completed]
    dated.sort(key=lambda t: t.due_date)
    return dated[:limit]


def recent_tasks(tasks: Sequence[Task], limit: int = 10) -> list[Task]:
    """Newest tasks first."""
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)[:limit]


def group_tasks_by_status(tasks: Sequence[Task]) -> dict[TaskStatus, list[Task]]:
    groups: dict[TaskStatus, list[Task]] = {status: [] for status in TaskStatus}
    for task in tasks:
        groups[task.status].append(task)
    return groups


def group_tasks_by_priority(tasks: Sequence[Task]) -> dict[TaskPriority, list[Task]]:
    groups: dict[TaskPriority, list[Task]] = {
        TaskPriority.HIGH: [],
        TaskPriority.MEDIUM: [],
        TaskPriority.LOW: [],
    }
    for task in tasks:
        groups[task.priority].append(task)
    return groups


def expenses_by_category(
    categories: Sequence[BudgetCategory],
    expenses: Sequence[BudgetExpense],
) -> dict[str, list[BudgetExpense]]:
    """Expenses per known category id; expenses of unknown categories are left out."""
    grouped: dict[str, list[BudgetExpense]] = {c.id: [] for c in categories}
    for expense in expenses:
        if expense.category_id in grouped:
            grouped[expense.category_id].append(expense)
    return grouped


def tasks_with_prices(tasks: Sequence[Task]) -> list[Task]:
    return [t for t in tasks if t.has_price]


def filter_tasks(tasks: Sequence[Task], view: TaskListView = TaskListView.ALL) -> list[Task]:
    """Apply a task-list filter chip. Results are newest first."""
    view = TaskListView(view)
    if view == TaskListView.TODO:
        selected = [t for t in tasks if t.status == TaskStatus.TODO]
    elif view == TaskListView.IN_PROGRESS:
        selected = [t for t in tasks if t.status == TaskStatus.IN_PROGRESS]
    elif view == TaskListView.COMPLETED:
        selected = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    elif view == TaskListView.PRICED:
        selected = [t for t in tasks if t.has_price]
    elif view == TaskListView.UNPRICED:
        selected = [t for t in tasks if not t.has_price]
    else:
        selected = list(tasks)
    return sorted(selected, key=lambda t: t.created_at, reverse=True)


def paginate(tasks: Sequence[Task], page: int = 1, page_size: int = 5) -> TaskPage:
    """
    One page of a list. Page numbers start at 1 and are clamped into
    range, so an out-of-range page returns the last one.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    total_items = len(tasks)
    total_pages = math.ceil(total_items / page_size)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * page_size
    return TaskPage(
        items=list(tasks[start:start + page_size]),
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )


# =============================================================================
# DUPLICATE DETECTION
# =============================================================================

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_title(text: str) -> str:
    """Lowercase, trim, drop punctuation, collapse whitespace."""
    text = _NON_WORD.sub("", text.lower().strip())
    return _WHITESPACE.sub(" ", text).strip()


def is_duplicate_title(title_a: str, title_b: str, ratio: float = 0.7) -> bool:
    """
    Whether two titles describe the same thing.

    True on an exact normalized match, or when the significant words
    (longer than three characters) they share reach `ratio` of the
    smaller word list.
    """
    normalized_a = normalize_title(title_a)
    normalized_b = normalize_title(title_b)
    if normalized_a == normalized_b:
        return True

    keywords_a = [w for w in normalized_a.split(" ") if len(w) > 3]
    keywords_b = [w for w in normalized_b.split(" ") if len(w) > 3]
    if not keywords_a or not keywords_b:
        return False

    common = sum(1 for word in keywords_a if word in keywords_b)
    return common >= min(len(keywords_a), len(keywords_b)) * ratio


def find_duplicate_title(
    title: str,
    candidates: Iterable[tuple[str, str]],
    ratio: float = 0.7,
    exclude_id: Optional[str] = None,
) -> tuple[Optional[str], bool]:
    """
    First candidate whose title duplicates `title`.

    Args:
        candidates: (id, title) pairs
        exclude_id: The entity being edited, never its own duplicate

    Returns:
        (matching title or None, whether the match is exact)
    """
    normalized = normalize_title(title)
    fuzzy_match: Optional[str] = None
    for candidate_id, candidate_title in candidates:
        if candidate_id == exclude_id:
            continue
        if normalize_title(candidate_title) == normalized:
            return candidate_title, True
        if fuzzy_match is None and is_duplicate_title(title, candidate_title, ratio):
            fuzzy_match = candidate_title
    return fuzzy_match, False

