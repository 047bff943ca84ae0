"""
Main Orchestrator for Event Planner

This module ties the components together and defines the flows the
UI calls:
1. Task entry (draft -> validate -> confirm duplicates -> file under a project)
2. Expense entry (draft -> validate -> confirm duplicates -> save)
3. Event creation and smart task templates
4. Budget export

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the planner until validation passes
- A similar title is only saved after explicit confirmation
- An exact duplicate is never saved

Every flow returns the saved entity (or None) together with the
ValidationResult, so the caller can show what was wrong.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from eventplanner.agents import KeywordCommandInterpreter, PlannerTools
from eventplanner.audit import AuditLogger, configure_logging
from eventplanner.config import Settings, get_settings
from eventplanner.models.audit import AuditEventBuilder
from eventplanner.models.planner import (
    EVENT_TYPE_CATALOG,
    BudgetExpense,
    Event,
    EventType,
    Project,
    Task,
    TaskPriority,
    ValidationIssue,
    ValidationResult,
)
from eventplanner.models.templates import SmartTaskTemplate, templates_for_event_type
from eventplanner.services.export import ExportError, GoogleSheetsBudgetExporter
from eventplanner.services.storage import JsonFileStore, KeyValueStore
from eventplanner.services.sync import RemoteSyncInterface, create_sync_client
from eventplanner.state import PlannerStore, SyncCoordinator
from eventplanner.validation import PlannerValidator


logger = structlog.get_logger(__name__)


class PlannerService:
    """
    Orchestrates the data-entry flows on top of the planner.

    Usage:
        task, result = service.create_task("Book Venue", price="5000")
        if task is None and result.requires_confirmation:
            task, result = service.create_task("Book Venue", price="5000", confirm_duplicate=True)
    """

    def __init__(
        self,
        planner: PlannerStore,
        validator: Optional[PlannerValidator] = None,
        exporter: Optional[GoogleSheetsBudgetExporter] = None,
    ):
        self._planner = planner
        self._validator = validator or PlannerValidator()
        self._exporter = exporter
        self._audit = planner.audit

    @property
    def planner(self) -> PlannerStore:
        return self._planner

    @property
    def validator(self) -> PlannerValidator:
        return self._validator

    def _declined(
        self,
        entity_type: str,
        title: Optional[str],
        result: ValidationResult,
        confirmed: bool,
    ) -> bool:
        """Audit the outcome and report whether the flow must stop."""
        if not result.is_valid:
            self._audit.log(AuditEventBuilder.validation_rejected(
                entity_type, [issue.model_dump() for issue in result.issues]
            ))
            logger.info("draft_rejected", entity_type=entity_type, errors=result.error_count)
            return True
        if result.warnings:
            self._audit.log(AuditEventBuilder.duplicate_warning(entity_type, title or "", confirmed))
        return not result.can_proceed(confirmed=confirmed)

    # =========================================================================
    # TASKS
    # =========================================================================

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        price: Any = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: Optional[datetime] = None,
        project_id: Optional[str] = None,
        confirm_duplicate: bool = False,
    ) -> tuple[Optional[Task], ValidationResult]:
        """
        Validate and create a task.

        Without a valid project_id the task goes under the selected
        event's project (created on demand), or the general project.

        Returns:
            (task or None, validation result)
        """
        result = self._validator.validate_task(
            title, price, self._planner.tasks_for_selected_event()
        )
        if self._declined("task", title, result, confirm_duplicate):
            return None, result

        parsed_price, _ = self._validator.parse_amount(
            price, field="price", required=False, allow_zero=True
        )
        project = self._planner.get_project(project_id) if project_id else None
        if project is None:
            project = self._planner.ensure_event_project()

        task = self._planner.add_task(
            title=title.strip(),
            description=(description or "").strip() or None,
            project_id=project.id,
            priority=priority,
            due_date=due_date,
            price=parsed_price,
        )
        return task, result

    def update_task_details(
        self,
        task_id: str,
        confirm_duplicate: bool = False,
        **changes: Any,
    ) -> tuple[Optional[Task], ValidationResult]:
        """
        Validate and apply an edit. Title and price are validated when
        present; the task is never its own duplicate.
        """
        current = self._planner.get_task(task_id)
        if current is None:
            return None, ValidationResult(is_valid=False, issues=[ValidationIssue(
                field="id",
                issue_type="not_found",
                message=f"Task not found: {task_id}",
                severity="error",
            )])

        title = changes.get("title", current.title)
        price = changes.get("price")
        result = self._validator.validate_task(
            title, price, self._planner.tasks_for_selected_event(), editing_task_id=task_id
        )
        if self._declined("task", title, result, confirm_duplicate):
            return None, result

        if "title" in changes:
            changes["title"] = title.strip()
        if "price" in changes:
            changes["price"], _ = self._validator.parse_amount(
                price, field="price", required=False, allow_zero=True
            )
        return self._planner.update_task(task_id, **changes), result

    def apply_template(
        self,
        template: SmartTaskTemplate,
        project_id: Optional[str] = None,
        confirm_duplicate: bool = False,
    ) -> tuple[Optional[Task], ValidationResult]:
        """Create a task from a smart template."""
        return self.create_task(
            template.title,
            description=template.description,
            price=template.price,
            priority=template.priority,
            project_id=project_id,
            confirm_duplicate=confirm_duplicate,
        )

    def suggested_templates(self) -> list[SmartTaskTemplate]:
        """Templates for the selected event's type, minus ones already added."""
        event = self._planner.selected_event
        event_type = event.type if event is not None else EventType.CUSTOM
        existing = {t.title.strip().lower() for t in self._planner.tasks_for_selected_event()}
        return [
            template for template in templates_for_event_type(event_type)
            if template.title.lower() not in existing
        ]

    # =========================================================================
    # BUDGET
    # =========================================================================

    def create_expense(
        self,
        title: str,
        amount: Any,
        category_id: Optional[str] = None,
        vendor: Optional[str] = None,
        notes: Optional[str] = None,
        is_paid: bool = False,
        date: Optional[datetime] = None,
        confirm_duplicate: bool = False,
    ) -> tuple[Optional[BudgetExpense], ValidationResult]:
        """
        Validate and create a free-standing expense.

        Returns:
            (expense or None, validation result)
        """
        result = self._validator.validate_expense(
            title,
            amount,
            category_id,
            self._planner.budget_expenses,
            self._planner.budget_categories,
        )
        if self._declined("budget_expense", title, result, confirm_duplicate):
            return None, result

        parsed_amount, _ = self._validator.parse_amount(amount)
        fields: dict[str, Any] = {
            "title": title.strip(),
            "amount": parsed_amount,
            "category_id": category_id,
            "vendor": (vendor or "").strip() or None,
            "notes": (notes or "").strip() or None,
            "is_paid": is_paid,
        }
        if date is not None:
            fields["date"] = date
        return self._planner.add_budget_expense(**fields), result

    async def export_budget(self) -> int:
        """
        Export the budget of the selected event to Google Sheets.

        Returns:
            Number of sheets written

        Raises:
            ExportError: If export is not configured or fails
        """
        if self._exporter is None or not self._exporter.is_configured:
            raise ExportError("Google Sheets export is not configured")
        return await asyncio.to_thread(
            self._exporter.export,
            self._planner.budget_categories,
            self._planner.expenses_for_selected_event(),
        )

    # =========================================================================
    # EVENTS AND PROJECTS
    # =========================================================================

    def create_event(
        self,
        name: str,
        event_type: EventType = EventType.WEDDING,
        budget: Any = None,
        color: Optional[str] = None,
    ) -> tuple[Optional[Event], ValidationResult]:
        """
        Validate and create an event; the new event becomes selected.

        The colour defaults to the event type's colour.
        """
        result = self._validator.validate_event(name, budget)
        if self._declined("event", name, result, confirmed=False):
            return None, result

        parsed_budget, _ = self._validator.parse_amount(
            budget, field="budget", required=False, allow_zero=True
        )
        event = self._planner.add_event(
            name=name.strip(),
            type=event_type,
            color=color or EVENT_TYPE_CATALOG[event_type].color,
            budget=parsed_budget,
        )
        return event, result

    def share_project(self, project_id: str, user_ids: list[str]) -> Optional[Project]:
        """Replace the users a project is shared with."""
        unique = list(dict.fromkeys(uid for uid in user_ids if uid))
        return self._planner.update_project(project_id, shared_with=unique)


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

@dataclass
class AppComponents:
    """Everything the application root owns."""
    planner: PlannerStore
    service: PlannerService
    coordinator: SyncCoordinator
    assistant: KeywordCommandInterpreter
    audit: AuditLogger

    @property
    def sync_client(self) -> RemoteSyncInterface:
        return self.coordinator.client

    async def shutdown(self) -> None:
        """End the sync session and wait for pending writes."""
        await self.coordinator.end_session()
        await self.planner.flush()


async def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    start_sync: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Application settings (read from the environment if omitted)
        store: Local storage; a JSON file store in the data directory by default
        start_sync: Whether to start the remote sync session straight away

    Returns:
        The wired components
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level, app_settings.log_json)

    audit = AuditLogger()
    store = store or JsonFileStore(app_settings.data_path)
    planner = await PlannerStore.load(store, audit=audit, settings=app_settings)

    exporter = None
    if settings.google_sheets.is_configured:
        exporter = GoogleSheetsBudgetExporter(settings.google_sheets, audit=audit)

    service = PlannerService(planner, PlannerValidator(app_settings), exporter)
    client = await create_sync_client(settings.supabase, audit=audit)
    coordinator = SyncCoordinator(planner, client)
    if start_sync:
        await coordinator.start_session()

    assistant = KeywordCommandInterpreter(PlannerTools(planner), planner)
    logger.info(
        "app_components_ready",
        remote_sync=client.is_enabled,
        export=exporter is not None,
    )
    return AppComponents(
        planner=planner,
        service=service,
        coordinator=coordinator,
        assistant=assistant,
        audit=audit,
    )
