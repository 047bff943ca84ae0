"""
Draft Validation

DESIGN DECISION: Validation happens before anything reaches the
repository, in two stages:

STAGE 1 - FIELD VALIDATION:
- Required fields present (non-blank title)
- Amounts parse as finite numbers and are in range

STAGE 2 - DUPLICATE DETECTION:
- Compares the title against existing tasks or expenses
- Exact normalized match while creating: error (hard block)
- Similar title: warning, allowed through once the user confirms

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes input. A declined draft
leaves the planner untouched.
"""

import math
from typing import Iterable, Optional, Sequence

from eventplanner.config import AppSettings, get_settings
from eventplanner.models.planner import (
    BudgetCategory,
    BudgetExpense,
    Task,
    ValidationIssue,
    ValidationResult,
)
from eventplanner.state.derivation import find_duplicate_title


MAX_TITLE_LENGTH = 200


class PlannerValidator:
    """
    Validates task, expense and event drafts.

    Stage 1: Field validation (no state needed)
    Stage 2: Duplicate detection against existing entities
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # =========================================================================
    # AMOUNTS
    # =========================================================================

    @staticmethod
    def parse_amount(
        value: object,
        field: str = "amount",
        required: bool = True,
        allow_zero: bool = False,
    ) -> tuple[Optional[float], list[ValidationIssue]]:
        """
        Parse a user-entered amount.

        Accepts numbers and numeric strings (thousands separators allowed).

        Returns:
            (parsed value or None, issues)
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            if not required:
                return None, []
            return None, [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field.capitalize()} is required",
                severity="error",
            )]

        if isinstance(value, bool):
            parsed = math.nan
        elif isinstance(value, (int, float)):
            parsed = float(value)
        else:
            try:
                parsed = float(str(value).strip().replace(",", ""))
            except ValueError:
                parsed = math.nan

        if not math.isfinite(parsed):
            return None, [ValidationIssue(
                field=field,
                issue_type="malformed",
                message=f"{field.capitalize()} must be a number",
                severity="error",
                suggested_fix="Enter digits only, e.g. 1500 or 1500.50",
            )]

        if parsed < 0 or (parsed == 0 and not allow_zero):
            bound = "zero or more" if allow_zero else "greater than zero"
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field.capitalize()} must be {bound}",
                severity="error",
            )]

        return parsed, []

    # =========================================================================
    # STAGE 1
    # =========================================================================

    def _validate_title(self, title: Optional[str], field: str = "title") -> list[ValidationIssue]:
        issues = []
        stripped = (title or "").strip()
        if not stripped:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field.capitalize()} is required",
                severity="error",
            ))
        elif len(stripped) > MAX_TITLE_LENGTH:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field.capitalize()} must be at most {MAX_TITLE_LENGTH} characters",
                severity="error",
                suggested_fix="Move the details into the description",
            ))
        return issues

    # =========================================================================
    # STAGE 2
    # =========================================================================

    def _check_duplicates(
        self,
        title: str,
        candidates: Iterable[tuple[str, str]],
        entity_label: str,
        editing_id: Optional[str] = None,
    ) -> list[ValidationIssue]:
        match, exact = find_duplicate_title(
            title,
            candidates,
            ratio=self._settings.duplicate_keyword_ratio,
            exclude_id=editing_id,
        )
        if match is None:
            return []

        if exact and editing_id is None:
            return [ValidationIssue(
                field="title",
                issue_type="duplicate",
                message=f"This {entity_label} already exists: \"{match}\"",
                severity="error",
                suggested_fix=f"Use a different title or edit the existing {entity_label}",
            )]
        return [ValidationIssue(
            field="title",
            issue_type="possible_duplicate",
            message=f"A similar {entity_label} already exists: \"{match}\"",
            severity="warning",
            suggested_fix="Confirm to create it anyway",
        )]

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def validate_task(
        self,
        title: Optional[str],
        price: object = None,
        existing_tasks: Sequence[Task] = (),
        editing_task_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate a task draft.

        Args:
            title: Task title as entered
            price: Optional price; zero is allowed and means "no price"
            existing_tasks: Tasks to check for duplicates
            editing_task_id: Set when editing, so the task is not its own duplicate
        """
        issues = self._validate_title(title)
        _, price_issues = self.parse_amount(price, field="price", required=False, allow_zero=True)
        issues.extend(price_issues)

        if not _has_errors(issues):
            issues.extend(self._check_duplicates(
                title.strip(),
                ((t.id, t.title) for t in existing_tasks),
                "task",
                editing_id=editing_task_id,
            ))

        return ValidationResult(is_valid=not _has_errors(issues), issues=issues)

    def validate_expense(
        self,
        title: Optional[str],
        amount: object,
        category_id: Optional[str] = None,
        existing_expenses: Sequence[BudgetExpense] = (),
        categories: Sequence[BudgetCategory] = (),
        editing_expense_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate an expense draft.

        An unknown category is reported as info: the repository files
        the expense under the default category.
        """
        issues = self._validate_title(title)
        _, amount_issues = self.parse_amount(amount)
        issues.extend(amount_issues)

        known = {c.id for c in categories}
        if category_id and known and category_id not in known:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_category",
                message=f"Unknown category \"{category_id}\"; the default category will be used",
                severity="info",
            ))

        if not _has_errors(issues):
            issues.extend(self._check_duplicates(
                title.strip(),
                ((e.id, e.title) for e in existing_expenses),
                "expense",
                editing_id=editing_expense_id,
            ))

        return ValidationResult(is_valid=not _has_errors(issues), issues=issues)

    def validate_event(self, name: Optional[str], budget: object = None) -> ValidationResult:
        issues = self._validate_title(name, field="name")
        _, budget_issues = self.parse_amount(budget, field="budget", required=False, allow_zero=True)
        issues.extend(budget_issues)
        return ValidationResult(is_valid=not _has_errors(issues), issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per issue, errors first."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"Error: {issue.message}")
        for issue in result.warnings:
            lines.append(f"Warning: {issue.message}")
            if issue.suggested_fix:
                lines.append(f"  {issue.suggested_fix}")
        return "\n".join(lines)


def _has_errors(issues: Iterable[ValidationIssue]) -> bool:
    return any(issue.severity == "error" for issue in issues)
