"""
Planner State Package

The entity repository, the pure derivation and scoping functions it
recomputes with, and the coordinator that syncs it with a remote backend.
"""

from eventplanner.state.repository import (
    ChangeAction,
    EntityKind,
    PlannerChange,
    PlannerStore,
    PlannerValidationError,
)
from eventplanner.state.sync_coordinator import SyncCoordinator

__all__ = [
    "ChangeAction",
    "EntityKind",
    "PlannerChange",
    "PlannerStore",
    "PlannerValidationError",
    "SyncCoordinator",
]
