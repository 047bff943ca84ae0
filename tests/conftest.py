"""
Shared fixtures.

Test strategy:
1. Unit tests for pure parts (models, derivation, validation, export grids)
2. Repository and flow tests on an in-memory store
3. No real network calls: Supabase, realtime and Google Sheets are faked
"""

import pytest

from eventplanner.audit import AuditLogger
from eventplanner.config import AppSettings, SupabaseSettings
from eventplanner.services.storage import InMemoryStore
from eventplanner.state import PlannerStore

from factories import SteppingClock, counter_ids


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def app_settings(tmp_path) -> AppSettings:
    return AppSettings(data_dir=str(tmp_path))


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
async def planner(store, audit, app_settings, clock) -> PlannerStore:
    return await PlannerStore.load(
        store,
        audit=audit,
        id_factory=counter_ids(),
        clock=clock,
        settings=app_settings,
    )


@pytest.fixture
def supabase_settings() -> SupabaseSettings:
    return SupabaseSettings(
        url="https://example.supabase.co",
        anon_key="anon-key",
        retry_attempts=1,
        retry_max_wait_seconds=0,
    )

