"""
Tests for the Google Sheets budget export

The workbook builder is pure. The writer is exercised against an
in-process stand-in for a gspread client.
"""

import gspread
import pytest

from eventplanner.audit import AuditLogger
from eventplanner.config import GoogleSheetsSettings
from eventplanner.models.audit import AuditEventType
from eventplanner.services.export import (
    ExportError,
    GoogleSheetsBudgetExporter,
    SheetData,
    build_budget_workbook,
)
from eventplanner.services.export.google_sheets import format_date

from factories import START, make_category, make_expense


class FakeWorksheet:
    def __init__(self, title, fail_on_update=False):
        self.title = title
        self.values = [["stale"]]
        self.fail_on_update = fail_on_update

    def clear(self):
        self.values = []

    def update(self, range_name, values):
        if self.fail_on_update:
            raise gspread.exceptions.GSpreadException("quota exceeded")
        assert range_name == "A1"
        self.values = values


class FakeSpreadsheet:
    def __init__(self, existing=()):
        self.sheets = {title: FakeWorksheet(title) for title in existing}
        self.added = []

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.added.append((title, rows, cols))
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


class FakeGspreadClient:
    def __init__(self, spreadsheet=None):
        self.spreadsheet = spreadsheet
        self.opened = []

    def open_by_key(self, key):
        self.opened.append(key)
        if self.spreadsheet is None:
            raise gspread.SpreadsheetNotFound(key)
        return self.spreadsheet


@pytest.fixture
def sheets_settings() -> GoogleSheetsSettings:
    return GoogleSheetsSettings(credentials_path="", spreadsheet_id="sheet-1")


@pytest.fixture
def budget():
    categories = [
        make_category("venue", allocated=1000, spent=300, name="Venue"),
        make_category("music", spent=50, name="Music"),
    ]
    expenses = [
        make_expense("e1", 300, "venue", vendor="Grand Hall", is_paid=True),
        make_expense("e2", 50, "music"),
        make_expense("e3", 20, "gone"),
    ]
    return categories, expenses


class TestWorkbook:
    """Building the value grids."""

    def test_sheet_order(self, budget):
        sheets = build_budget_workbook(*budget)
        assert [s.name for s in sheets] == ["Budget Summary", "Venue", "Music", "All Expenses"]

    def test_summary(self, budget):
        summary = build_budget_workbook(*budget)[0]
        assert summary.rows == [
            ["Budget Category", "Allocated", "Spent", "Remaining", "Percentage Used"],
            ["Venue", 1000, 300, 700, "30.00%"],
            ["Music", 0, 50, -50, "0%"],
            ["TOTAL", 1000, 350, 650, ""],
        ]

    def test_category_sheet(self, budget):
        venue = build_budget_workbook(*budget)[1]
        assert venue.rows == [
            ["Expense", "Amount", "Vendor", "Date", "Paid"],
            ["Expense e1", 300, "Grand Hall", "6/1/2025", "Yes"],
            ["Subtotal", 300, "", "", ""],
        ]

    def test_all_expenses_includes_unknown_categories(self, budget):
        everything = build_budget_workbook(*budget)[-1]
        assert everything.rows[1][0] == "Venue"
        assert everything.rows[2] == ["Music", "Expense e2", 50, "", "6/1/2025", "No"]
        assert everything.rows[3][0] == ""
        assert len(everything.rows) == 4

    def test_empty_category_has_zero_subtotal(self):
        sheets = build_budget_workbook([make_category("flowers", name="Flowers")], [])
        assert sheets[1].rows[-1] == ["Subtotal", 0, "", "", ""]

    def test_long_category_names_are_truncated(self):
        name = "Entertainment and Evening Activities"
        sheets = build_budget_workbook([make_category("fun", name=name)], [])
        assert sheets[1].name == name[:31]

    def test_date_format(self):
        assert format_date(START) == "6/1/2025"


class TestExporter:
    """Writing the workbook."""

    def test_writes_every_sheet(self, budget, sheets_settings):
        spreadsheet = FakeSpreadsheet(existing=["Budget Summary"])
        audit = AuditLogger()
        exporter = GoogleSheetsBudgetExporter(
            sheets_settings, audit=audit, client=FakeGspreadClient(spreadsheet)
        )

        assert exporter.export(*budget) == 4

        assert spreadsheet.sheets["Budget Summary"].values[0][0] == "Budget Category"
        assert ("Venue", 100, 5) in spreadsheet.added
        assert ("All Expenses", 100, 6) in spreadsheet.added
        assert audit.recent()[0].event_type == AuditEventType.BUDGET_EXPORTED

    def test_export_twice_gives_same_workbook(self, budget, sheets_settings):
        spreadsheet = FakeSpreadsheet()
        exporter = GoogleSheetsBudgetExporter(sheets_settings, client=FakeGspreadClient(spreadsheet))

        exporter.export(*budget)
        first = {title: sheet.values for title, sheet in spreadsheet.sheets.items()}
        exporter.export(*budget)

        assert {title: sheet.values for title, sheet in spreadsheet.sheets.items()} == first
        assert len(spreadsheet.added) == 4

    def test_missing_spreadsheet(self, budget, sheets_settings):
        exporter = GoogleSheetsBudgetExporter(sheets_settings, client=FakeGspreadClient())
        with pytest.raises(ExportError, match="Spreadsheet not found: sheet-1"):
            exporter.export(*budget)

    def test_write_failure(self, sheets_settings):
        spreadsheet = FakeSpreadsheet()
        spreadsheet.sheets["Broken"] = FakeWorksheet("Broken", fail_on_update=True)
        audit = AuditLogger()
        exporter = GoogleSheetsBudgetExporter(
            sheets_settings, audit=audit, client=FakeGspreadClient(spreadsheet)
        )

        with pytest.raises(ExportError):
            exporter.write_workbook([SheetData("Fine", [["a"]]), SheetData("Broken", [["b"]])])

        error = audit.recent()[0]
        assert error.event_type == AuditEventType.SYSTEM_ERROR
        assert error.details["written"] == 1

    def test_not_configured(self):
        exporter = GoogleSheetsBudgetExporter(GoogleSheetsSettings(credentials_path="", spreadsheet_id=""))
        assert exporter.is_configured is False
