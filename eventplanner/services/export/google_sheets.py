"""
Budget Export to Google Sheets

The budget is exported as a workbook of plain value grids:

1. "Budget Summary"  - one row per category plus a TOTAL row
2. One sheet per category with its expenses and a Subtotal row
3. "All Expenses"    - every expense with its category name

Building the grids is pure; writing them is the only part that talks to
Google. Each sheet is cleared and rewritten, so exporting twice leaves
the same workbook.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from eventplanner.audit import AuditLogger
from eventplanner.config import GoogleSheetsSettings, get_settings
from eventplanner.models.audit import AuditEventBuilder
from eventplanner.models.planner import BudgetCategory, BudgetExpense


logger = structlog.get_logger(__name__)


SUMMARY_SHEET = "Budget Summary"
ALL_EXPENSES_SHEET = "All Expenses"
# Spreadsheet tab names are limited to 31 characters
MAX_SHEET_NAME_LENGTH = 31

SUMMARY_HEADERS = ["Budget Category", "Allocated", "Spent", "Remaining", "Percentage Used"]
CATEGORY_HEADERS = ["Expense", "Amount", "Vendor", "Date", "Paid"]
ALL_EXPENSES_HEADERS = ["Category", "Expense", "Amount", "Vendor", "Date", "Paid"]


class ExportError(Exception):
    """The budget could not be written to the spreadsheet."""
    pass


@dataclass
class SheetData:
    """One worksheet: its tab name and rows (header first)."""
    name: str
    rows: list[list[Any]] = field(default_factory=list)


# =============================================================================
# WORKBOOK
# =============================================================================

def format_percent_used(category: BudgetCategory) -> str:
    if category.allocated <= 0:
        return "0%"
    return f"{category.spent / category.allocated * 100:.2f}%"


def format_date(value: datetime) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def _paid(expense: BudgetExpense) -> str:
    return "Yes" if expense.is_paid else "No"


def build_budget_workbook(
    categories: Sequence[BudgetCategory],
    expenses: Sequence[BudgetExpense],
) -> list[SheetData]:
    """
    Build every sheet of the budget workbook.

    Expenses are listed in the order given; expenses whose category is
    unknown appear only in "All Expenses", with an empty category name.
    """
    summary = SheetData(SUMMARY_SHEET, [list(SUMMARY_HEADERS)])
    for category in categories:
        summary.rows.append([
            category.name,
            category.allocated,
            category.spent,
            category.allocated - category.spent,
            format_percent_used(category),
        ])
    summary.rows.append([
        "TOTAL",
        sum(c.allocated for c in categories),
        sum(c.spent for c in categories),
        sum(c.allocated - c.spent for c in categories),
        "",
    ])

    sheets = [summary]
    for category in categories:
        sheet = SheetData(category.name[:MAX_SHEET_NAME_LENGTH], [list(CATEGORY_HEADERS)])
        in_category = [e for e in expenses if e.category_id == category.id]
        for expense in in_category:
            sheet.rows.append([
                expense.title,
                expense.amount,
                expense.vendor or "",
                format_date(expense.date),
                _paid(expense),
            ])
        sheet.rows.append(["Subtotal", sum(e.amount for e in in_category), "", "", ""])
        sheets.append(sheet)

    names = {c.id: c.name for c in categories}
    everything = SheetData(ALL_EXPENSES_SHEET, [list(ALL_EXPENSES_HEADERS)])
    for expense in expenses:
        everything.rows.append([
            names.get(expense.category_id, ""),
            expense.title,
            expense.amount,
            expense.vendor or "",
            format_date(expense.date),
            _paid(expense),
        ])
    sheets.append(everything)

    return sheets


# =============================================================================
# WRITER
# =============================================================================

class GoogleSheetsBudgetExporter:
    """
    Writes the budget workbook into the configured spreadsheet.

    Uses service account credentials. Calls are blocking; run them off
    the event loop.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        audit: Optional[AuditLogger] = None,
        client: Optional[gspread.Client] = None,
    ):
        self._settings = settings or get_settings().google_sheets
        self._audit = audit or AuditLogger()
        self._client = client
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @property
    def is_configured(self) -> bool:
        return self._client is not None or self._settings.is_configured

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize with the service account (once)."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ExportError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ExportError(f"Spreadsheet not found: {self._settings.spreadsheet_id}")
        return self._spreadsheet

    def _worksheet(self, sheet: SheetData) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        width = max((len(row) for row in sheet.rows), default=1)
        try:
            return spreadsheet.worksheet(sheet.name)
        except gspread.WorksheetNotFound:
            return spreadsheet.add_worksheet(
                title=sheet.name,
                rows=max(len(sheet.rows), 100),
                cols=width,
            )

    def write_workbook(self, sheets: Sequence[SheetData]) -> int:
        """
        Replace the contents of each sheet.

        Returns:
            Number of sheets written

        Raises:
            ExportError: If the spreadsheet cannot be reached or written
        """
        written = 0
        try:
            for sheet in sheets:
                worksheet = self._worksheet(sheet)
                worksheet.clear()
                worksheet.update(range_name="A1", values=sheet.rows)
                written += 1
        except gspread.exceptions.GSpreadException as e:
            logger.error("budget_export_failed", written=written, error=str(e))
            self._audit.log_error("budget_export_failed", str(e), {"written": written})
            raise ExportError(f"Failed to export budget: {e}") from e

        destination = self._settings.spreadsheet_id or "spreadsheet"
        self._audit.log(AuditEventBuilder.budget_exported(written, destination))
        logger.info("budget_exported", sheets=written)
        return written

    def export(
        self,
        categories: Sequence[BudgetCategory],
        expenses: Sequence[BudgetExpense],
    ) -> int:
        return self.write_workbook(build_budget_workbook(categories, expenses))
