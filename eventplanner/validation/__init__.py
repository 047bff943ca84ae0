"""Validation package."""

from eventplanner.validation.validator import PlannerValidator

__all__ = ["PlannerValidator"]
