"""
Tests for the orchestrator flows

Each flow validates before touching the planner, asks for confirmation
on similar titles and refuses exact duplicates.
"""

import pytest

from eventplanner.config import Settings
from eventplanner.models.audit import AuditEventType
from eventplanner.models.planner import EventType, TaskPriority
from eventplanner.orchestrator import PlannerService, create_app_components
from eventplanner.services.export import ExportError
from eventplanner.services.storage import InMemoryStore
from eventplanner.services.sync import DisabledSyncClient
from eventplanner.validation import PlannerValidator


class RecordingExporter:
    """Stands in for the Google Sheets exporter."""

    is_configured = True

    def __init__(self):
        self.calls = []

    def export(self, categories, expenses):
        self.calls.append((list(categories), list(expenses)))
        return 3


@pytest.fixture
def service(planner, app_settings) -> PlannerService:
    return PlannerService(planner, PlannerValidator(app_settings))


def _audit_types(planner):
    return [event.event_type for event in planner.audit.recent()]


class TestCreateTask:
    """Task entry flow."""

    async def test_task_goes_to_general_project(self, service, planner):
        task, result = service.create_task("Book Venue", price="5,000")

        assert result.is_valid is True
        assert task.price == 5000
        project = planner.get_project(task.project_id)
        assert project.name == "General"
        assert planner.get_budget_category("venue").spent == 5000

    async def test_task_goes_to_selected_event(self, service, planner):
        event, _ = service.create_event("Sarah's Wedding")
        task, _ = service.create_task("Book Venue", priority=TaskPriority.HIGH)

        project = planner.get_project(task.project_id)
        assert project.event_id == event.id
        assert task.priority == TaskPriority.HIGH

    async def test_explicit_project(self, service, planner):
        project = planner.add_project(name="Extras")
        task, _ = service.create_task("Buy candles", project_id=project.id)
        assert task.project_id == project.id

    async def test_invalid_draft_changes_nothing(self, service, planner):
        task, result = service.create_task("", price="abc")

        assert task is None
        assert result.error_count == 2
        assert planner.tasks == []
        assert AuditEventType.VALIDATION_REJECTED in _audit_types(planner)

    async def test_similar_title_needs_confirmation(self, service, planner):
        service.create_task("Wedding Venue")

        task, result = service.create_task("Book Wedding Venue")
        assert task is None
        assert result.requires_confirmation is True
        assert len(planner.tasks) == 1

        task, _ = service.create_task("Book Wedding Venue", confirm_duplicate=True)
        assert task is not None
        assert len(planner.tasks) == 2
        assert _audit_types(planner).count(AuditEventType.DUPLICATE_WARNING) == 2

    async def test_exact_duplicate_is_refused(self, service, planner):
        service.create_task("Book Venue")
        task, result = service.create_task("book venue", confirm_duplicate=True)
        assert task is None
        assert result.issues[0].issue_type == "duplicate"
        assert len(planner.tasks) == 1

    async def test_same_title_in_another_event(self, service, planner):
        service.create_event("Sarah's Wedding")
        first, _ = service.create_task("Book Venue")

        service.create_event("Tom's Wedding")
        second, result = service.create_task("Book Venue")

        assert second is not None
        assert result.issues == []
        assert planner.get_project(first.project_id).event_id != planner.get_project(second.project_id).event_id
        assert len(planner.tasks) == 2


class TestUpdateTask:
    """Task edit flow."""

    async def test_update_price(self, service, planner):
        task, _ = service.create_task("Book Venue", price="5000")
        updated, _ = service.update_task_details(task.id, price="1,200")
        assert updated.price == 1200
        assert planner.get_budget_category("venue").spent == 1200

    async def test_keeping_the_title_is_fine(self, service):
        task, _ = service.create_task("Book Venue")
        updated, result = service.update_task_details(task.id, title="Book Venue", description="Downtown")
        assert result.issues == []
        assert updated.description == "Downtown"

    async def test_unknown_task(self, service):
        task, result = service.update_task_details("missing", title="x")
        assert task is None
        assert result.issues[0].issue_type == "not_found"

    async def test_invalid_price_is_refused(self, service, planner):
        task, _ = service.create_task("Book Venue", price="5000")
        updated, result = service.update_task_details(task.id, price="-3")
        assert updated is None
        assert result.is_valid is False
        assert planner.get_task(task.id).price == 5000


class TestTemplates:
    """Smart task templates."""

    async def test_suggestions_follow_the_event_type(self, service):
        service.create_event("Sarah's Wedding", event_type=EventType.WEDDING)
        titles = [t.title for t in service.suggested_templates()]
        assert "Book Wedding Venue" in titles
        assert "Order Birthday Cake" not in titles

    async def test_applied_template_is_no_longer_suggested(self, service, planner):
        service.create_event("Sarah's Wedding")
        template = next(t for t in service.suggested_templates() if t.title == "Hire DJ")

        task, _ = service.apply_template(template)

        assert task.price == 1200
        assert planner.get_budget_category("music").spent == 1200
        assert "Hire DJ" not in [t.title for t in service.suggested_templates()]

    async def test_no_event_means_no_suggestions(self, service):
        assert service.suggested_templates() == []


class TestBudgetFlows:
    """Expense entry and export."""

    async def test_create_expense(self, service, planner):
        expense, result = service.create_expense("Cake deposit", "80", category_id="catering", vendor="  ")
        assert result.is_valid is True
        assert expense.vendor is None
        assert planner.get_budget_category("catering").spent == 80

    async def test_unknown_category_is_filed_under_venue(self, service):
        expense, result = service.create_expense("Deposit", "50", category_id="nope")
        assert result.issues[0].severity == "info"
        assert expense.category_id == "venue"

    async def test_zero_amount_is_refused(self, service, planner):
        expense, _ = service.create_expense("Deposit", "0")
        assert expense is None
        assert planner.budget_expenses == []

    async def test_export_not_configured(self, service):
        with pytest.raises(ExportError):
            await service.export_budget()

    async def test_export_selected_event_budget(self, planner, app_settings):
        exporter = RecordingExporter()
        service = PlannerService(planner, PlannerValidator(app_settings), exporter)
        service.create_task("Book Venue", price="5000")

        assert await service.export_budget() == 3
        categories, expenses = exporter.calls[0]
        assert len(categories) == 8
        assert [e.amount for e in expenses] == [5000]


class TestEventsAndSharing:
    """Event creation and project sharing."""

    async def test_event_colour_comes_from_its_type(self, service, planner):
        event, _ = service.create_event("Mia turns 30", event_type=EventType.BIRTHDAY)
        assert event.color == "#F59E0B"
        assert planner.selected_event_id == event.id

    async def test_custom_colour(self, service):
        event, _ = service.create_event("Gala", color="#000000")
        assert event.color == "#000000"

    async def test_invalid_event(self, service, planner):
        event, result = service.create_event("  ", budget="-1")
        assert event is None
        assert result.error_count == 2
        assert planner.events == []

    async def test_share_project_deduplicates(self, service, planner):
        project = planner.add_project(name="Plan")
        shared = service.share_project(project.id, ["u2", "u3", "u2", ""])
        assert shared.shared_with == ["u2", "u3"]


class TestAppComponents:
    """Wiring the application root."""

    async def test_local_only_components(self, monkeypatch):
        for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "GOOGLE_SHEETS_CREDENTIALS_PATH"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("LOG_JSON", "false")
        store = InMemoryStore()

        components = await create_app_components(Settings(), store=store)

        assert isinstance(components.sync_client, DisabledSyncClient)
        assert components.coordinator.is_active is True
        assert len(components.planner.budget_categories) == 8

        components.planner.add_project(name="Wedding")
        reply = components.assistant.handle("add task Book DJ")
        assert reply.succeeded is True
        task, _ = components.service.create_task("Order Flowers", price="100")
        assert task is not None

        await components.shutdown()
        assert components.coordinator.is_active is False
        assert "tasks" in store.data
