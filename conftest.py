"""
Shared fixtures: a file-backed SQLite app, a test client, and in-memory
stand-ins for the Sheets v4 and Drive v3 discovery resources.
"""
import itertools
import re

import httplib2
import pytest
from googleapiclient.errors import HttpError

from app import create_app
from config import Config
from models import db, User

ADMIN_EMAIL = "admin@dpsrkp.net"
SCHOOL_EMAIL = "head@dpsrkp.net"

_A1 = re.compile(r"^(?:(?P<title>[^!]+)!)?(?P<col>[A-Z]+)(?P<row>\d+)")


# ==========================
# Google API fakes
# ==========================

class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


def _column_index(letters):
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


class FakeSheetsService:
    """
    Holds tabs as lists of rows and answers the same call chain as
    googleapiclient: service.spreadsheets().values().get(...).execute().
    Reads drop trailing blank cells and rows the way the real API does.
    """

    def __init__(self):
        self.tabs = {}
        self.calls = []
        self.fail_reads = set()
        self.offline = False
        self._ids = itertools.count(100)

    # ---- helpers for tests ----

    def add_tab(self, title, rows=None):
        self.tabs[title] = {"id": next(self._ids), "rows": [list(r) for r in rows or []]}
        return self.tabs[title]["id"]

    def rows(self, title):
        return self.tabs[title]["rows"]

    def data_rows(self, title):
        """Rows below the header as dicts keyed by header name."""
        rows = self.rows(title)
        header = rows[0]
        out = []
        for row in rows[1:]:
            padded = list(row) + [""] * (len(header) - len(row))
            out.append(dict(zip(header, padded)))
        return out

    def set_cell(self, title, row_number, column, value):
        """row_number counts data rows from 1; column is a header name."""
        rows = self.rows(title)
        col = rows[0].index(column)
        row = rows[row_number]
        while len(row) <= col:
            row.append("")
        row[col] = value

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    # ---- discovery surface ----

    def spreadsheets(self):
        return self

    def values(self):
        return _FakeValues(self)

    def get(self, spreadsheetId, fields=None):
        def run():
            if self.offline:
                raise OSError("Network is unreachable")
            self.calls.append(("spreadsheets.get", spreadsheetId))
            return {
                "sheets": [
                    {"properties": {"title": title, "sheetId": tab["id"]}}
                    for title, tab in self.tabs.items()
                ]
            }
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            replies = []
            for req in body.get("requests", []):
                if "addSheet" in req:
                    title = req["addSheet"]["properties"]["title"]
                    sheet_id = self.add_tab(title)
                    self.calls.append(("addSheet", title))
                    replies.append({"addSheet": {"properties": {"title": title, "sheetId": sheet_id}}})
                elif "deleteDimension" in req:
                    rng = req["deleteDimension"]["range"]
                    rows = self._rows_by_id(rng["sheetId"])
                    del rows[rng["startIndex"]:rng["endIndex"]]
                    self.calls.append(("deleteDimension", rng["sheetId"], rng["startIndex"]))
                    replies.append({})
                else:
                    self.calls.append(("format", next(iter(req))))
                    replies.append({})
            return {"replies": replies}
        return _Request(run)

    def _rows_by_id(self, sheet_id):
        for tab in self.tabs.values():
            if tab["id"] == sheet_id:
                return tab["rows"]
        raise KeyError(sheet_id)


class _FakeValues:
    def __init__(self, service):
        self.service = service

    def _tab_rows(self, rng):
        title = rng.split("!", 1)[0]
        if title not in self.service.tabs:
            raise HttpError(
                httplib2.Response({"status": 400}),
                b'{"error": {"code": 400, "message": "Unable to parse range"}}',
            )
        return title, self.service.tabs[title]["rows"]

    def get(self, spreadsheetId, range):
        def run():
            title, rows = self._tab_rows(range)
            self.service.calls.append(("values.get", title))
            if title in self.service.fail_reads:
                raise HttpError(
                    httplib2.Response({"status": 500}),
                    b'{"error": {"code": 500, "message": "backend error"}}',
                )
            values = []
            for row in rows:
                row = list(row)
                while row and row[-1] == "":
                    row.pop()
                values.append(row)
            while values and not values[-1]:
                values.pop()
            return {"values": values} if values else {"range": range}
        return _Request(run)

    def _write(self, title, row_index, col_index, value):
        rows = self.service.tabs[title]["rows"]
        while len(rows) <= row_index:
            rows.append([])
        row = rows[row_index]
        while len(row) <= col_index:
            row.append("")
        row[col_index] = "" if value is None else str(value)

    def update(self, spreadsheetId, range, valueInputOption, body):
        def run():
            title, _ = self._tab_rows(range)
            self.service.calls.append(("values.update", title))
            for r, row in enumerate(body["values"]):
                for c, value in enumerate(row):
                    self._write(title, r, c, value)
            return {}
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for item in body["data"]:
                match = _A1.match(item["range"])
                title = match.group("title")
                self.service.calls.append(("values.batchUpdate", title))
                self._write(
                    title,
                    int(match.group("row")) - 1,
                    _column_index(match.group("col")),
                    item["values"][0][0],
                )
            return {}
        return _Request(run)

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        def run():
            title, rows = self._tab_rows(range)
            self.service.calls.append(("values.append", title))
            while rows and not any(cell != "" for cell in rows[-1]):
                rows.pop()
            for row in body["values"]:
                rows.append(["" if v is None else str(v) for v in row])
            return {}
        return _Request(run)

    def clear(self, spreadsheetId, range, body):
        def run():
            title, rows = self._tab_rows(range)
            self.service.calls.append(("values.clear", title))
            del rows[:]
            return {}
        return _Request(run)


class FakeDriveService:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    def files(self):
        return self

    def create(self, body, media_body, fields=None):
        def run():
            if self.fail:
                raise HttpError(
                    httplib2.Response({"status": 403}),
                    b'{"error": {"code": 403, "message": "insufficient permissions"}}',
                )
            self.uploads.append({"body": body, "mimetype": media_body.mimetype(), "size": media_body.size()})
            return {"id": f"drive-file-{len(self.uploads)}"}
        return _Request(run)


# ==========================
# App fixtures
# ==========================

@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'portal.sqlite3'}"
        AUTH_SALT = "pytest-salt"
        COOKIE_SECURE = False
        MAIL_SUPPRESS_SEND = True
        MAIL_DEFAULT_SENDER = "noreply@exun.co"
        ADMIN_EMAILS = ADMIN_EMAIL
        SPREADSHEET_ID = "spreadsheet-1"
        GOOGLE_SERVICE_ACCOUNT_JSON = ""
        FOLDER_ID = "folder-1"
        SHEETS_SYNC_ENABLED = False
        SHEETS_SYNC_TABLES = ""
        SHEETS_DELETE_MIN_KEYS = 1
        SHEETS_DELETE_POLICY = "strict"

    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def portal(app):
    return app.extensions["portal"]


@pytest.fixture
def login(client, portal):
    """Log the test client in as the given email through the OTP flow."""
    def _login(email):
        otp = portal.authenticator.otp_for(email)
        resp = client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})
        assert resp.status_code == 200, resp.get_json()
        return resp
    return _login


@pytest.fixture
def school(app, client, login):
    """A signed-up school account with a completed profile, logged in."""
    login(SCHOOL_EMAIL)
    resp = client.post("/api/auth/complete", json={"username": "dpsrkp", "password": "secret123"})
    assert resp.status_code == 200, resp.get_json()
    resp = client.post("/api/user/complete", json={
        "fullname": "Anita Rao",
        "phone_number": "9876543210",
        "principals_email": "principal@dpsrkp.net",
        "individual": False,
        "institution_name": "Delhi Public School RK Puram",
        "address": "Sector 12, RK Puram",
        "principals_name": "Padma Srinivasan",
    })
    assert resp.status_code == 200, resp.get_json()
    with app.app_context():
        return User.query.filter_by(email=SCHOOL_EMAIL).first().id
