"""
Thin wrapper over the Sheets v4 discovery resource.

Every table lives on a tab with the same name. All writes are RAW so the
sheet holds exactly the text the database produced.
"""
import logging

from snapshots import TableSnapshot

logger = logging.getLogger(__name__)

READ_RANGE = "A1:Z"


class EmptySheetError(Exception):
    """The tab has no header row."""


class SheetNotFoundError(Exception):
    pass


def a1_column_name(n):
    """Zero-based column index to A1 letters: 0 -> A, 25 -> Z, 26 -> AA."""
    name = ""
    while n >= 0:
        name = chr(ord("A") + n % 26) + name
        n = n // 26 - 1
    return name


def _clean(cell):
    text_value = "" if cell is None else str(cell)
    return "" if text_value.strip() == "''" else text_value


class SheetsMirror:
    def __init__(self, service, spreadsheet_id):
        self.service = service
        self.spreadsheet_id = spreadsheet_id

    # ==========================
    # Reads
    # ==========================

    def _sheet_ids(self):
        meta = (
            self.service.spreadsheets()
            .get(spreadsheetId=self.spreadsheet_id, fields="sheets.properties")
            .execute()
        )
        ids = {}
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            ids[props.get("title")] = props.get("sheetId")
        return ids

    def ensure_sheet(self, title):
        """Return the tab's sheetId, creating the tab when it is missing."""
        ids = self._sheet_ids()
        if title in ids:
            return ids[title]

        body = {"requests": [{"addSheet": {"properties": {"title": title}}}]}
        resp = (
            self.service.spreadsheets()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
            .execute()
        )
        replies = resp.get("replies") or []
        if replies:
            props = (replies[0].get("addSheet") or {}).get("properties") or {}
            if "sheetId" in props:
                logger.info(f"Created sheet tab {title} (id={props['sheetId']})")
                return props["sheetId"]

        ids = self._sheet_ids()
        if title in ids:
            return ids[title]
        raise SheetNotFoundError(f"failed to get sheet id for {title}")

    def read_table(self, title) -> TableSnapshot:
        resp = (
            self.service.spreadsheets()
            .values()
            .get(spreadsheetId=self.spreadsheet_id, range=f"{title}!{READ_RANGE}")
            .execute()
        )
        values = resp.get("values") or []
        if not values:
            raise EmptySheetError(f"sheet {title} is empty")
        header = [str(h) for h in values[0]]
        rows = [[_clean(c) for c in row] for row in values[1:]]
        return TableSnapshot(header, rows)

    # ==========================
    # Writes
    # ==========================

    def overwrite(self, title, values):
        body = {"values": values}
        return (
            self.service.spreadsheets()
            .values()
            .update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{title}!A1",
                valueInputOption="RAW",
                body=body,
            )
            .execute()
        )

    def update_cells(self, title, cells):
        """
        Write single cells in one request.
        cells: iterable of (column_index, row_number, value); row_number is 1-based like A1.
        """
        data = [
            {"range": f"{title}!{a1_column_name(col)}{row_number}", "values": [[value]]}
            for col, row_number, value in cells
        ]
        if not data:
            return 0
        body = {"valueInputOption": "RAW", "data": data}
        (
            self.service.spreadsheets()
            .values()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
            .execute()
        )
        return len(data)

    def append_rows(self, title, rows):
        if not rows:
            return 0
        (
            self.service.spreadsheets()
            .values()
            .append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{title}!A1",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            )
            .execute()
        )
        return len(rows)

    def clear(self, title):
        return (
            self.service.spreadsheets()
            .values()
            .clear(spreadsheetId=self.spreadsheet_id, range=title, body={})
            .execute()
        )

    def _batch(self, requests):
        if not requests:
            return None
        return (
            self.service.spreadsheets()
            .batchUpdate(spreadsheetId=self.spreadsheet_id, body={"requests": requests})
            .execute()
        )

    def delete_rows(self, sheet_id, indices):
        """
        Delete grid rows by zero-based index (0 is the header).
        Requests go highest index first so earlier deletes do not shift later ones.
        """
        ordered = sorted(set(indices), reverse=True)
        requests = [_delete_request(sheet_id, i, i + 1) for i in ordered]
        self._batch(requests)
        return len(requests)

    def delete_row_range(self, sheet_id, start, end):
        if end <= start:
            return 0
        self._batch([_delete_request(sheet_id, start, end)])
        return end - start

    def format_header(self, sheet_id, column_count):
        requests = [
            {
                "updateSheetProperties": {
                    "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                    "fields": "gridProperties.frozenRowCount",
                }
            },
        ]
        if column_count > 0:
            requests.append({
                "repeatCell": {
                    "range": {
                        "sheetId": sheet_id,
                        "startRowIndex": 0,
                        "endRowIndex": 1,
                        "startColumnIndex": 0,
                        "endColumnIndex": column_count,
                    },
                    "cell": {"userEnteredFormat": {"textFormat": {"bold": True}}},
                    "fields": "userEnteredFormat.textFormat.bold",
                }
            })
        self._batch(requests)


def _delete_request(sheet_id, start, end):
    return {
        "deleteDimension": {
            "range": {
                "sheetId": sheet_id,
                "dimension": "ROWS",
                "startIndex": start,
                "endIndex": end,
            }
        }
    }
