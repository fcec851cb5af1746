import pytest

from conftest import FakeSheetsService
from sheets_mirror import EmptySheetError, SheetsMirror


@pytest.fixture
def sheets():
    return FakeSheetsService()


@pytest.fixture
def mirror(sheets):
    return SheetsMirror(sheets, "spreadsheet-1")


def test_ensure_sheet_creates_once(mirror, sheets):
    sheet_id = mirror.ensure_sheet("users")

    assert mirror.ensure_sheet("users") == sheet_id
    assert sheets.count("addSheet") == 1


def test_read_table_pads_rows_and_cleans_quotes(mirror, sheets):
    sheets.add_tab("events", [["id", "name", "mode"], ["quiz", "''"], ["build", "Build", "offline"]])

    snap = mirror.read_table("events")

    assert snap.columns == ["id", "name", "mode"]
    assert snap.rows == [["quiz", "", ""], ["build", "Build", "offline"]]


def test_read_empty_tab(mirror, sheets):
    sheets.add_tab("events")
    with pytest.raises(EmptySheetError):
        mirror.read_table("events")


def test_update_cells_uses_a1_addresses(mirror, sheets):
    sheets.add_tab("users", [["id", "email"], ["1", "a@dpsrkp.net"]])

    assert mirror.update_cells("users", [(1, 2, "b@dpsrkp.net"), (0, 3, "2")]) == 2
    assert mirror.update_cells("users", []) == 0
    assert sheets.rows("users")[1] == ["1", "b@dpsrkp.net"]
    assert sheets.rows("users")[2][0] == "2"


def test_append_and_overwrite(mirror, sheets):
    sheets.add_tab("logs")
    mirror.overwrite("logs", [["id", "reason"], ["1", "invite_sent"]])
    assert mirror.append_rows("logs", [["2", "event_updated"]]) == 1
    assert mirror.append_rows("logs", []) == 0

    assert sheets.rows("logs") == [["id", "reason"], ["1", "invite_sent"], ["2", "event_updated"]]
    mirror.clear("logs")
    assert sheets.rows("logs") == []


def test_delete_rows_goes_highest_index_first(mirror, sheets):
    sheet_id = sheets.add_tab("users", [["email"], ["a"], ["b"], ["c"], ["d"]])

    assert mirror.delete_rows(sheet_id, [1, 3, 3]) == 2
    assert [c[2] for c in sheets.calls if c[0] == "deleteDimension"] == [3, 1]
    assert sheets.rows("users") == [["email"], ["b"], ["d"]]

    assert mirror.delete_row_range(sheet_id, 1, 3) == 2
    assert mirror.delete_row_range(sheet_id, 2, 2) == 0
    assert sheets.rows("users") == [["email"]]


def test_format_header(mirror, sheets):
    sheet_id = sheets.add_tab("users", [["email"]])
    mirror.format_header(sheet_id, 1)
    assert sheets.count("format") == 2
