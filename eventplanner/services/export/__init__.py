"""Budget export."""

from eventplanner.services.export.google_sheets import (
    ExportError,
    GoogleSheetsBudgetExporter,
    SheetData,
    build_budget_workbook,
)

__all__ = [
    "ExportError",
    "GoogleSheetsBudgetExporter",
    "SheetData",
    "build_budget_workbook",
]
