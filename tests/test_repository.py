"""
Tests for the planner repository

Covers the mutation pipeline (persist, apply, recompute, notify), event
scoping, the budget rules, remote merges and best-effort persistence.
"""

import json

import pytest

from eventplanner.models.audit import AuditEventType
from eventplanner.models.planner import TaskListView, TaskStatus
from eventplanner.services.storage import JsonFileStore, StorageKey
from eventplanner.state import ChangeAction, EntityKind, PlannerValidationError

from factories import (
    load_planner,
    make_category,
    make_event,
    make_expense,
    make_project,
    make_task,
)


def _event_types(audit):
    return [event.event_type for event in audit.recent()]


def _wedding_with_venue(planner):
    """Sarah's Wedding with one priced task under its project."""
    event = planner.add_event(name="Sarah's Wedding", type="wedding")
    project = planner.ensure_event_project()
    task = planner.add_task(title="Book Venue", project_id=project.id, price=5000)
    return event, project, task


class TestLoading:
    """Loading, seeding and the persisted selection."""

    async def test_empty_store_seeds_categories(self, planner, store):
        assert len(planner.budget_categories) == 8
        await planner.flush()
        stored = json.loads(store.data[StorageKey.BUDGET_CATEGORIES.value])
        assert [c["id"] for c in stored][:2] == ["venue", "catering"]

    async def test_state_survives_a_reload(self, planner, store):
        event, _, task = _wedding_with_venue(planner)
        await planner.flush()

        reloaded = await load_planner(store)
        assert reloaded.tasks == planner.tasks
        assert reloaded.budget_expenses == planner.budget_expenses
        assert reloaded.get_budget_category("venue").spent == 5000
        assert reloaded.selected_event_id == event.id
        assert reloaded.get_task(task.id).price == 5000

    async def test_stale_selection_is_dropped(self, store):
        store.data[StorageKey.SELECTED_EVENT.value] = "ghost"
        planner = await load_planner(store)
        assert planner.selected_event_id is None
        await planner.flush()
        assert StorageKey.SELECTED_EVENT.value not in store.data

    async def test_unreadable_key_starts_empty(self, store, audit):
        store.data[StorageKey.TASKS.value] = json.dumps([
            make_task("t1", "p1").to_storage()
        ])
        store.fail_reads.add(StorageKey.TASKS.value)
        planner = await load_planner(store, audit=audit)
        assert planner.tasks == []
        assert AuditEventType.PERSISTENCE_READ_FAILED in _event_types(audit)

    async def test_undecodable_file_starts_empty(self, tmp_path, audit):
        (tmp_path / "tasks.json").write_bytes(b"\xff\xfe[bad")
        planner = await load_planner(JsonFileStore(tmp_path), audit=audit)
        assert planner.tasks == []
        assert AuditEventType.PERSISTENCE_READ_FAILED in _event_types(audit)

    async def test_invalid_items_are_skipped(self, store):
        store.data[StorageKey.TASKS.value] = json.dumps([
            make_task("t1", "p1").to_storage(),
            {"id": "broken"},
            make_task("t1", "p1", title="Duplicate id").to_storage(),
        ])
        planner = await load_planner(store)
        assert [t.title for t in planner.tasks] == ["Task"]

    async def test_malformed_payload_starts_empty(self, store):
        store.data[StorageKey.PROJECTS.value] = "{not json"
        planner = await load_planner(store)
        assert planner.projects == []

    async def test_loading_rebuilds_missing_mirrors(self, store):
        store.data[StorageKey.TASKS.value] = json.dumps([
            make_task("t1", "p1", title="Hire DJ", price=800).to_storage()
        ])
        planner = await load_planner(store)
        assert [e.id for e in planner.budget_expenses] == ["task-t1"]
        assert planner.get_budget_category("music").spent == 800


class TestTaskMirroring:
    """Priced tasks and their mirrored expenses."""

    async def test_wedding_walkthrough(self, planner):
        event, project, task = _wedding_with_venue(planner)

        assert planner.selected_event_id == event.id
        assert project.event_id == event.id
        assert project.name == "Sarah's Wedding"

        mirror = planner.get_budget_expense(f"task-{task.id}")
        assert mirror.title == "Task: Book Venue"
        assert mirror.amount == 5000
        assert mirror.is_paid is False
        assert planner.get_budget_category("venue").spent == 5000

        planner.toggle_task_status(task.id)
        completed = planner.toggle_task_status(task.id)
        assert completed.status == TaskStatus.COMPLETED
        assert planner.get_budget_expense(f"task-{task.id}").is_paid is True
        assert planner.get_budget_category("venue").spent == 5000

    async def test_price_change_moves_the_total(self, planner):
        _, _, task = _wedding_with_venue(planner)
        planner.update_task(task.id, price=6500)
        assert planner.get_budget_category("venue").spent == 6500

    async def test_removing_the_price_removes_the_mirror(self, planner):
        _, _, task = _wedding_with_venue(planner)
        planner.update_task(task.id, price=None)
        assert planner.budget_expenses == []
        assert planner.get_budget_category("venue").spent == 0

    async def test_retitle_moves_the_category(self, planner):
        _, _, task = _wedding_with_venue(planner)
        planner.update_task(task.id, title="Book DJ")
        assert planner.get_budget_category("venue").spent == 0
        assert planner.get_budget_category("music").spent == 5000
        assert planner.get_budget_expense(f"task-{task.id}").title == "Task: Book DJ"

    async def test_deleting_the_task_removes_the_mirror(self, planner):
        _, _, task = _wedding_with_venue(planner)
        assert planner.delete_task(task.id) is True
        assert planner.get_budget_expense(f"task-{task.id}") is None
        assert planner.get_budget_category("venue").spent == 0

    async def test_mirrors_are_read_only(self, planner):
        _, _, task = _wedding_with_venue(planner)
        mirror_id = f"task-{task.id}"
        assert planner.update_budget_expense(mirror_id, amount=1) is None
        assert planner.delete_budget_expense(mirror_id) is False
        assert planner.get_budget_expense(mirror_id).amount == 5000


class TestTasks:
    """Task creation, updates and status handling."""

    async def test_completed_at_follows_status(self, planner):
        task = planner.add_task(title="Send invites", project_id="p1")
        assert task.completed_at is None
        done = planner.update_task(task.id, status="completed")
        assert done.completed_at is not None
        reopened = planner.update_task(task.id, status=TaskStatus.TODO)
        assert reopened.completed_at is None

    async def test_three_toggles_return_to_start(self, planner):
        task = planner.add_task(title="Send invites", project_id="p1")
        seen = [planner.toggle_task_status(task.id) for _ in range(3)]
        assert [t.status for t in seen] == [
            TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.TODO,
        ]
        assert [t.completed_at is not None for t in seen] == [False, True, False]

    async def test_task_created_completed_gets_completed_at(self, planner):
        task = planner.add_task(title="Done already", project_id="p1", status="completed")
        assert task.completed_at is not None

    async def test_camel_case_fields_are_accepted(self, planner):
        task = planner.add_task(title="Send invites", projectId="p1")
        assert task.project_id == "p1"

    async def test_unknown_field_is_rejected(self, planner):
        with pytest.raises(PlannerValidationError):
            planner.add_task(title="Send invites", project_id="p1", colour="red")

    async def test_missing_title_is_rejected(self, planner):
        with pytest.raises(PlannerValidationError):
            planner.add_task(project_id="p1")

    async def test_invalid_status_is_rejected(self, planner):
        task = planner.add_task(title="Send invites", project_id="p1")
        with pytest.raises(PlannerValidationError):
            planner.update_task(task.id, status="blocked")

    async def test_id_and_created_at_are_immutable(self, planner):
        task = planner.add_task(title="Send invites", project_id="p1")
        updated = planner.update_task(task.id, id="other", created_at=task.created_at.replace(year=2000))
        assert updated == task

    async def test_unknown_task_update_returns_none(self, planner):
        assert planner.update_task("missing", title="x") is None
        assert planner.toggle_task_status("missing") is None
        assert planner.delete_task("missing") is False

    async def test_ids_come_from_the_factory(self, planner):
        assert planner.add_task(title="A", project_id="p1").id == "id1"
        assert planner.add_task(title="B", project_id="p1").id == "id2"


class TestEventsAndScoping:
    """Events, selection and the scoped views."""

    async def test_new_event_is_selected(self, planner):
        first = planner.add_event(name="Wedding", type="wedding")
        second = planner.add_event(name="Birthday", type="birthday")
        assert planner.selected_event_id == second.id
        assert planner.select_event(first.id) is True
        assert planner.selected_event == first

    async def test_unknown_selection_is_refused(self, planner):
        event = planner.add_event(name="Wedding")
        assert planner.select_event("missing") is False
        assert planner.selected_event_id == event.id

    async def test_deleting_the_selected_event_clears_selection(self, planner, store):
        event = planner.add_event(name="Wedding")
        planner.delete_event(event.id)
        assert planner.selected_event_id is None
        await planner.flush()
        assert StorageKey.SELECTED_EVENT.value not in store.data

    async def test_views_follow_the_selection(self, planner):
        wedding = planner.add_event(name="Wedding", type="wedding")
        wedding_project = planner.ensure_event_project()
        planner.add_task(title="Book Venue", project_id=wedding_project.id, price=100)

        birthday = planner.add_event(name="Birthday", type="birthday")
        birthday_project = planner.ensure_event_project()
        planner.add_task(title="Order Cake", project_id=birthday_project.id, price=40)

        assert [t.title for t in planner.tasks_for_selected_event()] == ["Order Cake"]
        assert planner.task_stats().total == 1

        planner.select_event(wedding.id)
        assert [t.title for t in planner.tasks_for_selected_event()] == ["Book Venue"]
        assert [e.amount for e in planner.expenses_for_selected_event()] == [100]
        assert [p.id for p in planner.projects_for_selected_event()] == [wedding_project.id]

        planner.select_event(None)
        assert len(planner.tasks_for_selected_event()) == 2
        assert birthday.id != wedding.id

    async def test_ensure_event_project_reuses_project(self, planner):
        planner.add_event(name="Wedding")
        first = planner.ensure_event_project()
        assert planner.ensure_event_project() == first
        assert len(planner.projects) == 1

    async def test_ensure_project_without_selection(self, planner):
        general = planner.ensure_event_project()
        assert general.name == "General"
        assert general.event_id is None
        assert planner.ensure_event_project() == general

    async def test_task_page(self, planner):
        for i in range(7):
            planner.add_task(title=f"Task {i}", project_id="p1", price=i)
        page = planner.task_page(TaskListView.PRICED, page=2, page_size=5)
        assert page.total_items == 6
        assert len(page.items) == 1

    async def test_budget_totals_use_task_prices_without_allocations(self, planner):
        _wedding_with_venue(planner)
        totals = planner.budget_totals()
        assert totals.uses_task_fallback is True
        assert totals.allocated == 5000
        assert totals.percent_spent == pytest.approx(100.0)

    async def test_budget_totals_stay_within_the_selected_event(self, planner):
        first = planner.add_event(name="Wedding", type="wedding")
        first_project = planner.ensure_event_project()
        planner.add_task(title="Book Venue", project_id=first_project.id, price=1000)

        planner.add_event(name="Gala", type="corporate")
        second_project = planner.ensure_event_project()
        planner.add_task(title="Book Venue", project_id=second_project.id, price=5000)

        planner.select_event(first.id)
        totals = planner.budget_totals()

        assert totals.allocated == 1000
        assert totals.spent == 1000
        assert totals.remaining == 0
        assert totals.percent_spent == pytest.approx(100.0)


class TestBudget:
    """Categories and free-standing expenses."""

    async def test_free_expense_counts_towards_its_category(self, planner):
        planner.add_budget_expense(title="Tasting", amount=120, category_id="catering")
        assert planner.get_budget_category("catering").spent == 120

    async def test_unknown_category_falls_back_to_venue(self, planner):
        expense = planner.add_budget_expense(title="Deposit", amount=50, category_id="nope")
        assert expense.category_id == "venue"

    async def test_spent_cannot_be_set(self, planner):
        planner.update_budget_category("venue", allocated=2000, spent=999)
        category = planner.get_budget_category("venue")
        assert category.allocated == 2000
        assert category.spent == 0

    async def test_seeded_category_cannot_be_deleted(self, planner):
        assert planner.delete_budget_category("venue") is False
        assert planner.get_budget_category("venue") is not None

    async def test_deleting_a_category_moves_its_expenses(self, planner):
        cake = planner.add_budget_category(name="Cake", allocated=300)
        expense = planner.add_budget_expense(title="Cake deposit", amount=80, category_id=cake.id)
        assert planner.get_budget_category(cake.id).spent == 80

        assert planner.delete_budget_category(cake.id) is True
        assert planner.get_budget_expense(expense.id).category_id == "venue"
        assert planner.get_budget_category("venue").spent == 80

    async def test_expense_update_and_delete(self, planner):
        expense = planner.add_budget_expense(title="Deposit", amount=50)
        planner.update_budget_expense(expense.id, amount=75, is_paid=True)
        assert planner.get_budget_category("venue").spent == 75
        assert planner.delete_budget_expense(expense.id) is True
        assert planner.get_budget_category("venue").spent == 0


class TestObserversAndPersistence:
    """Notifications and best-effort writes."""

    async def test_changes_include_derived_entities(self, planner):
        changes = []
        planner.subscribe(changes.append)
        task = planner.add_task(title="Book Venue", project_id="p1", price=100)

        direct = [c for c in changes if not c.derived]
        derived = [c for c in changes if c.derived]
        assert [(c.entity_type, c.action, c.entity_id) for c in direct] == [
            (EntityKind.TASK, ChangeAction.CREATED, task.id)
        ]
        assert (EntityKind.BUDGET_EXPENSE, ChangeAction.CREATED, f"task-{task.id}") in [
            (c.entity_type, c.action, c.entity_id) for c in derived
        ]
        assert (EntityKind.BUDGET_CATEGORY, ChangeAction.UPDATED, "venue") in [
            (c.entity_type, c.action, c.entity_id) for c in derived
        ]

    async def test_unsubscribe(self, planner):
        changes = []
        unsubscribe = planner.subscribe(changes.append)
        unsubscribe()
        planner.add_project(name="Plan")
        assert changes == []

    async def test_failing_observer_does_not_block(self, planner):
        def broken(change):
            raise RuntimeError("boom")

        received = []
        planner.subscribe(broken)
        planner.subscribe(received.append)
        project = planner.add_project(name="Plan")
        assert planner.get_project(project.id) == project
        assert len(received) == 1

    async def test_no_op_update_notifies_nothing(self, planner):
        project = planner.add_project(name="Plan")
        changes = []
        planner.subscribe(changes.append)
        assert planner.update_project(project.id, name="Plan") == project
        assert changes == []

    async def test_write_failure_keeps_memory_state(self, planner, store, audit):
        store.fail_writes.add(StorageKey.TASKS.value)
        task = planner.add_task(title="Book Venue", project_id="p1")
        await planner.flush()

        assert planner.get_task(task.id) == task
        assert StorageKey.TASKS.value not in store.data
        failures = [
            e for e in audit.recent()
            if e.event_type == AuditEventType.PERSISTENCE_WRITE_FAILED
        ]
        assert failures[0].details == {"key": "tasks"}

    async def test_writes_land_in_call_order(self, planner, store):
        task = planner.add_task(title="First", project_id="p1")
        planner.update_task(task.id, title="Second")
        planner.update_task(task.id, title="Third")
        await planner.flush()
        stored = json.loads(store.data[StorageKey.TASKS.value])
        assert stored[0]["title"] == "Third"
        assert planner.pending_writes() == []


class TestRemoteMerge:
    """Records arriving from the backend."""

    async def test_remote_insert(self, planner):
        changes = []
        planner.subscribe(changes.append)
        planner.merge_remote(make_task("r1", "p1", title="Hire DJ", price=300))

        assert planner.get_task("r1").title == "Hire DJ"
        assert planner.get_budget_category("music").spent == 300
        assert all(c.origin == "remote" for c in changes)
        assert AuditEventType.REMOTE_MERGE_APPLIED in _event_types(planner.audit)

    async def test_remote_update_replaces_local(self, planner):
        planner.merge_remote(make_project("p1", name="Old"))
        planner.merge_remote(make_project("p1", name="New"))
        assert [p.name for p in planner.projects] == ["New"]

    async def test_remote_event_does_not_change_selection(self, planner):
        planner.merge_remote(make_event())
        assert planner.selected_event_id is None
        assert planner.get_event("ev-remote").name == "Remote Party"

    async def test_remote_mirror_is_ignored(self, planner):
        assert planner.merge_remote(make_expense("task-x", 100)) is None
        assert planner.budget_expenses == []

    async def test_remote_category_keeps_local_spent(self, planner):
        planner.add_budget_expense(title="Deposit", amount=40)
        planner.merge_remote(make_category("venue", allocated=2000, spent=7, name="Venue"))
        venue = planner.get_budget_category("venue")
        assert venue.allocated == 2000
        assert venue.spent == 40

    async def test_remote_expense_with_unknown_category_is_filed_under_venue(self, planner):
        merged = planner.merge_remote(make_expense("r-exp", 75, "gone"))
        assert merged.category_id == "venue"
        assert planner.get_budget_expense("r-exp").category_id == "venue"
        assert planner.get_budget_category("venue").spent == 75
