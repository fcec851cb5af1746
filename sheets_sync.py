"""
Two-way reconciliation between the portal database and the Google Sheets mirror.

Every database table has a tab of the same name. Three tables are "keyed"
(users by email, events by id, individual_registrations by id): for those,
admins may edit, add or delete rows on the sheet and the edits flow back into
the database. Every other table is a read-only mirror that only gets gap
filled. A derived ``usr_reg`` tab flattens each user's team registrations.

Conflicts are decided with the ``updated_at`` column on both sides:

* DB strictly newer than the sheet: the DB row is copied onto the sheet row.
* A sheet row is written into the DB when its timestamp is newer, or when a
  non-blank cell differs from the DB. Both are judged on the row as it was
  read, so a sheet edit that kept an old timestamp still wins over the DB.
  A row that is unchanged since the last cycle of the same reconciler is not
  treated as edited. Blank sheet cells never clear a DB value.
* A DB row absent from the sheet is deleted when the sheet holds enough keys
  to be trusted. The opt-in ``tracked`` policy also requires the key to have
  been on the sheet in an earlier cycle.

One pass is idempotent: running it twice with no edits in between writes
nothing the second time.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from google_clients import SyncConfigurationError, build_sheets_service, load_service_account_info
from sheets_mirror import EmptySheetError, SheetsMirror
from snapshots import (
    build_upsert_sql, delete_keys, list_tables, read_database_table, table_columns,
)

logger = logging.getLogger(__name__)

PRIMARY_KEYS = {
    "users": "email",
    "events": "id",
    "individual_registrations": "id",
}
UPDATED_AT = "updated_at"
REGISTRATIONS_SHEET = "usr_reg"
DELETE_POLICIES = ("strict", "tracked")
UNREACHABLE_ERRORS = (HttpError, OSError, GoogleAuthError)

__all__ = [
    "PRIMARY_KEYS", "Reconciler", "SyncConfigurationError", "SyncReport", "TableReport",
    "build_reconciler", "build_registration_rows", "parse_flexible_time",
]


# ==========================
# Timestamps
# ==========================

_LAYOUTS = (
    "%Y-%m-%d %H:%M:%S.%f %z",
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
)
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")
_ZONE_AFTER_OFFSET = re.compile(r"^(.*[+-]\d{2}:?\d{2})\s+[A-Za-z]{1,6}$")
_ZERO = datetime(1, 1, 1)


def _try_layouts(value):
    value = _LONG_FRACTION.sub(r"\1", value)
    match = _ZONE_AFTER_OFFSET.match(value)
    if match:
        value = match.group(1)
    for layout in _LAYOUTS:
        try:
            parsed = datetime.strptime(value, layout)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            if parsed == _ZERO:
                return None
            return parsed.replace(tzinfo=timezone.utc)
        try:
            return parsed.astimezone(timezone.utc)
        except OverflowError:
            return None
    return None


def parse_flexible_time(raw):
    """
    Parse the timestamp shapes found in the DB and on the sheet into an aware UTC datetime.

    Returns None for empty, unparseable, or zero (0001-01-01) values. None sorts
    before every real timestamp in comparisons made by the reconciler.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value or value == "''":
        return None

    parsed = _try_layouts(value)
    if parsed is not None:
        return _non_zero(parsed)

    # "... +0000 +0000 UTC" style strings written twice by earlier tools
    tokens = value.split()
    collapsed = [t for i, t in enumerate(tokens) if i == 0 or t != tokens[i - 1]]
    if len(collapsed) != len(tokens):
        parsed = _try_layouts(" ".join(collapsed))
        if parsed is not None:
            return _non_zero(parsed)

    if " " in value:
        parsed = _try_layouts(value.replace(" ", "T", 1))
        if parsed is not None:
            return _non_zero(parsed)
    return None


def _non_zero(parsed):
    if parsed.replace(tzinfo=None) == _ZERO:
        return None
    return parsed


def is_newer(left, right):
    """left strictly after right, where None is the zero time."""
    if left is None:
        return False
    if right is None:
        return True
    return left > right


def now_timestamp():
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")


def _norm(cell):
    value = "" if cell is None else str(cell).strip()
    return "" if value == "''" else value


# ==========================
# Reports
# ==========================

@dataclass
class TableReport:
    table: str
    cells_written: int = 0
    rows_appended: int = 0
    sheet_rows_deleted: int = 0
    db_rows_deleted: int = 0
    rows_upserted: int = 0
    rows_skipped: int = 0
    overwritten: bool = False
    error: Optional[str] = None

    @property
    def changed(self):
        return bool(
            self.cells_written or self.rows_appended or self.sheet_rows_deleted
            or self.db_rows_deleted or self.rows_upserted or self.overwritten
        )


@dataclass
class SyncReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    tables: List[TableReport] = field(default_factory=list)
    registration_rows: int = 0
    error: Optional[str] = None

    def table(self, name):
        for report in self.tables:
            if report.table == name:
                return report
        return None

    @property
    def failed(self):
        return [t.table for t in self.tables if t.error]

    def summary(self):
        if self.error:
            return f"aborted: {self.error}"
        changed = [t.table for t in self.tables if t.changed]
        parts = [f"{len(self.tables)} tables"]
        if changed:
            parts.append("changed: " + ", ".join(changed))
        if self.failed:
            parts.append("failed: " + ", ".join(self.failed))
        return "; ".join(parts)


# ==========================
# Registrations tab
# ==========================

def build_registration_rows(users, events):
    """
    Flatten users.registrations JSON into one row per (user, event).

    The participant columns repeat p1_..pN_ where N is the largest team on
    record, capped by the event's capacity.
    """
    capacity = {}
    id_i, cap_i = events.index_of("id"), events.index_of("participants")
    for row in events.rows:
        try:
            capacity[events.value(row, id_i)] = int(events.value(row, cap_i))
        except ValueError:
            continue

    name_i, regs_i = users.index_of("username"), users.index_of("registrations")
    max_parts = 0
    parsed = []
    for row in users.rows:
        raw = users.value(row, regs_i)
        if not raw or raw == "{}":
            continue
        try:
            regs = json.loads(raw)
        except ValueError:
            continue
        if not isinstance(regs, dict):
            continue
        for event_id in sorted(regs):
            parts = regs[event_id] if isinstance(regs[event_id], list) else []
            cap = capacity.get(event_id) or len(parts)
            max_parts = max(max_parts, min(len(parts), cap))
            parsed.append((users.value(row, name_i), event_id, parts))

    header = ["username", "event_id"]
    for i in range(1, max_parts + 1):
        header += [f"p{i}_name", f"p{i}_email", f"p{i}_class", f"p{i}_phone"]

    values = [header]
    for username, event_id, parts in parsed:
        out = [username, event_id]
        for i in range(max_parts):
            member = parts[i] if i < len(parts) and isinstance(parts[i], dict) else {}
            out += [
                str(member.get("name", "")),
                str(member.get("email", "")),
                str(member.get("class", "")),
                str(member.get("phone", "")),
            ]
        values.append(out)
    return values


# ==========================
# Reconciler
# ==========================

class Reconciler:
    """
    One instance is kept for the life of the scheduler. It remembers the
    sheet rows it left behind last cycle, which tells a row an admin edited
    on the sheet apart from one that only fell behind the database.
    """

    def __init__(self, mirror: SheetsMirror, engine, primary_keys=None,
                 min_sheet_keys=1, delete_policy="strict"):
        if delete_policy not in DELETE_POLICIES:
            raise ValueError(f"unknown delete policy: {delete_policy}")
        self.mirror = mirror
        self.engine = engine
        self.primary_keys = dict(PRIMARY_KEYS if primary_keys is None else primary_keys)
        self.min_sheet_keys = max(1, int(min_sheet_keys))
        self.delete_policy = delete_policy
        self._seen_keys: Dict[str, set] = {}
        self._synced_rows: Dict[str, Dict[str, dict]] = {}

    # ---- entry points ----

    def sync_all(self, tables=None) -> SyncReport:
        report = SyncReport(started_at=datetime.now(timezone.utc))
        if tables is None:
            tables = list_tables(self.engine)
        logger.info(f"Sheets sync starting for {len(tables)} tables")

        try:
            self.mirror.ensure_sheet(REGISTRATIONS_SHEET)
        except UNREACHABLE_ERRORS as exc:
            logger.error(f"Sheets API unreachable, aborting sync cycle: {exc}")
            report.error = str(exc)
            report.finished_at = datetime.now(timezone.utc)
            return report

        try:
            report.registration_rows = self.write_registrations_sheet()
        except Exception:
            logger.exception("Failed to write the usr_reg sheet")

        for table in tables:
            try:
                report.tables.append(self.reconcile_table(table))
            except Exception as exc:
                logger.exception(f"Sheets sync failed for table {table}")
                report.tables.append(TableReport(table=table, error=str(exc)))

        report.finished_at = datetime.now(timezone.utc)
        logger.info(f"Sheets sync finished: {report.summary()}")
        return report

    def reconcile_table(self, table) -> TableReport:
        report = TableReport(table=table)
        sheet_id = self.mirror.ensure_sheet(table)
        db_snap = read_database_table(self.engine, table)

        try:
            sheet = self.mirror.read_table(table)
        except (EmptySheetError, HttpError) as exc:
            logger.warning(f"Could not read sheet {table} ({exc}); rewriting it from the database")
            self.mirror.overwrite(table, db_snap.as_values())
            report.overwritten = True
            report.rows_appended = len(db_snap.rows)
            pk = self.primary_keys.get(table)
            if pk and db_snap.index_of(pk) >= 0:
                self._remember(table, pk, db_snap)
            self.mirror.format_header(sheet_id, len(db_snap.columns))
            return report

        pk = self.primary_keys.get(table)
        keyed = bool(pk) and sheet.index_of(pk) >= 0 and db_snap.index_of(pk) >= 0
        if keyed:
            self._reconcile_keyed(table, pk, sheet_id, sheet, db_snap, report)
        elif pk:
            logger.warning(f"Sheet {table} has no {pk} column; mirroring without conflict resolution")

        self._fill_gaps(table, pk, sheet_id, sheet, report)
        if keyed:
            self._remember(table, pk, sheet)
        self.mirror.format_header(sheet_id, len(sheet.columns))
        return report

    def _remember(self, table, pk, snap):
        """Record the keys and cell values the sheet holds at the end of a cycle."""
        key_i = snap.index_of(pk)
        rows = {}
        for row in snap.rows:
            key = _norm(snap.value(row, key_i))
            if key:
                rows.setdefault(key, {col: _norm(snap.value(row, ci)) for ci, col in enumerate(snap.columns)})
        self._seen_keys[table] = set(rows)
        self._synced_rows[table] = rows

    # ---- keyed tables ----

    def _reconcile_keyed(self, table, pk, sheet_id, sheet, db_snap, report):
        self._cleanup(table, sheet_id, sheet, pk, report)
        # Decisions use the rows as read; the DB-newer pass rewrites sheet.rows in place
        as_read = [list(row) for row in sheet.rows]
        remembered = set()
        self._prefer_newer_db(table, pk, sheet, db_snap, report)
        self._delete_missing(table, pk, sheet, report)
        self._apply_upserts(table, pk, sheet, as_read, report, remembered)
        self._push_database(table, pk, sheet, report, remembered)

    def _cleanup(self, table, sheet_id, sheet, pk, report):
        """Drop duplicate rows (first wins) and orphan rows that only carry an id."""
        pk_i, id_i = sheet.index_of(pk), sheet.index_of("id")
        seen_keys, seen_ids = set(), set()
        doomed, orphan_ids = [], []

        for i, row in enumerate(sheet.rows):
            key = _norm(sheet.value(row, pk_i))
            row_id = _norm(sheet.value(row, id_i)) if id_i >= 0 else ""
            if key:
                if key in seen_keys:
                    doomed.append(i)
                    continue
                seen_keys.add(key)
            if row_id:
                if row_id in seen_ids:
                    doomed.append(i)
                    continue
                seen_ids.add(row_id)
            if row_id and not key:
                if all(not _norm(cell) for j, cell in enumerate(row) if j != id_i):
                    doomed.append(i)
                    orphan_ids.append(row_id)

        if not doomed:
            return
        # Data row i sits at grid row i + 1 (row 0 is the header)
        report.sheet_rows_deleted += self.mirror.delete_rows(sheet_id, [i + 1 for i in doomed])
        if orphan_ids:
            report.db_rows_deleted += delete_keys(self.engine, table, "id", orphan_ids)
        dropped = set(doomed)
        sheet.rows = [row for i, row in enumerate(sheet.rows) if i not in dropped]
        logger.info(
            f"Sheet {table}: removed {len(doomed)} duplicate/orphan rows "
            f"({len(orphan_ids)} orphan ids deleted from the database)"
        )

    def _write_row(self, table, sheet, row_index, db_snap, db_row, report):
        """Copy every differing DB cell onto sheet row ``row_index``; columns the DB lacks are left alone."""
        row = sheet.rows[row_index]
        cells = []
        for ci, col in enumerate(sheet.columns):
            di = db_snap.index_of(col)
            if di < 0:
                continue
            db_val = db_snap.value(db_row, di)
            if db_val.strip() != _norm(row[ci]):
                cells.append((ci, row_index + 2, db_val))
                row[ci] = db_val
        if cells:
            report.cells_written += self.mirror.update_cells(table, cells)
        return len(cells)

    def _prefer_newer_db(self, table, pk, sheet, db_snap, report):
        pk_i, upd_i = sheet.index_of(pk), sheet.index_of(UPDATED_AT)
        db_pk, db_upd = db_snap.index_of(pk), db_snap.index_of(UPDATED_AT)
        if db_upd < 0:
            return
        by_key = {}
        for db_row in db_snap.rows:
            by_key.setdefault(_norm(db_snap.value(db_row, db_pk)), db_row)

        for i, row in enumerate(sheet.rows):
            key = _norm(sheet.value(row, pk_i))
            db_row = by_key.get(key) if key else None
            if db_row is None:
                continue
            db_time = parse_flexible_time(db_snap.value(db_row, db_upd))
            if db_time is None:
                logger.debug(f"{table} {pk}={key}: database updated_at is zero, skipping comparison")
                continue
            sheet_time = parse_flexible_time(sheet.value(row, upd_i)) if upd_i >= 0 else None
            if is_newer(db_time, sheet_time):
                written = self._write_row(table, sheet, i, db_snap, db_row, report)
                if written:
                    logger.debug(f"{table} {pk}={key}: database newer, wrote {written} cells to sheet")

    def _delete_missing(self, table, pk, sheet, report):
        pk_i = sheet.index_of(pk)
        sheet_keys = {_norm(sheet.value(r, pk_i)) for r in sheet.rows} - {""}
        if len(sheet_keys) < self.min_sheet_keys:
            logger.info(
                f"Sheet {table} has {len(sheet_keys)} {pk} values (< {self.min_sheet_keys}); "
                f"skipping delete to avoid wiping the database"
            )
            return

        db_snap = read_database_table(self.engine, table)
        db_pk = db_snap.index_of(pk)
        missing = []
        seen = self._seen_keys.get(table, set())
        for row in db_snap.rows:
            key = row[db_pk]
            if key is None or _norm(key) in sheet_keys:
                continue
            if self.delete_policy == "tracked" and _norm(key) not in seen:
                continue
            missing.append(key)
        if not missing:
            return
        report.db_rows_deleted += delete_keys(self.engine, table, pk, missing)
        logger.info(f"Deleted {len(missing)} rows from {table} that were removed from the sheet")

    def _apply_upserts(self, table, pk, sheet, rows, report, remembered):
        db_snap = read_database_table(self.engine, table)
        db_columns = set(table_columns(self.engine, table))
        db_pk, db_upd = db_snap.index_of(pk), db_snap.index_of(UPDATED_AT)
        by_key = {}
        for db_row in db_snap.rows:
            by_key.setdefault(_norm(db_snap.value(db_row, db_pk)), db_row)

        columns = [c for c in sheet.columns if c in db_columns and c != UPDATED_AT]
        if pk not in columns:
            return
        pk_i, upd_i = sheet.index_of(pk), sheet.index_of(UPDATED_AT)
        synced = self._synced_rows.get(table, {})
        statements = {}

        with self.engine.begin() as conn:
            for row in rows:
                key = _norm(sheet.value(row, pk_i))
                if not key:
                    continue
                db_row = by_key.get(key)
                if db_row is not None and not self._sheet_wins(
                    sheet, row, upd_i, db_snap, db_row, db_upd, pk, synced.get(key)
                ):
                    logger.debug(f"{table} {pk}={key}: decision=skip")
                    report.rows_skipped += 1
                    remembered.add(key)
                    continue

                # Blank cells are left out entirely: an insert gets column defaults
                # and an update keeps the stored value.
                values = {}
                for col in columns:
                    cell = _norm(sheet.value(row, sheet.index_of(col)))
                    if cell:
                        values[col] = cell
                stamp = now_timestamp()
                if UPDATED_AT in db_columns:
                    values[UPDATED_AT] = stamp
                if db_row is None and "created_at" in db_columns and "created_at" not in values:
                    values["created_at"] = stamp

                names = tuple(values)
                if names not in statements:
                    statements[names] = text(build_upsert_sql(self.engine, table, pk, list(names)))
                params = {f"p{n}": values[col] for n, col in enumerate(names)}
                try:
                    with conn.begin_nested():
                        conn.execute(statements[names], params)
                except SQLAlchemyError as exc:
                    logger.warning(f"Upsert failed for {table} {pk}={key}: {exc}")
                    continue
                logger.debug(f"{table} {pk}={key}: decision=apply")
                report.rows_upserted += 1
                remembered.add(key)

    @staticmethod
    def _sheet_wins(sheet, row, upd_i, db_snap, db_row, db_upd, pk, synced=None):
        """
        Newer sheet timestamp, or a non-blank cell that differs from the DB.

        ``synced`` is the row as this reconciler left it last cycle. When the
        sheet still holds exactly that, any difference came from the DB side
        and the sheet does not win on content alone.
        """
        if upd_i >= 0 and db_upd >= 0:
            sheet_time = parse_flexible_time(sheet.value(row, upd_i))
            db_time = parse_flexible_time(db_snap.value(db_row, db_upd))
            if is_newer(sheet_time, db_time):
                return True
        skip = (pk.lower(), UPDATED_AT)
        if synced is not None and all(
            _norm(sheet.value(row, ci)) == synced.get(col, "")
            for ci, col in enumerate(sheet.columns) if col.lower() not in skip
        ):
            return False
        for ci, col in enumerate(sheet.columns):
            if col.lower() in skip:
                continue
            di = db_snap.index_of(col)
            if di < 0:
                continue
            cell = _norm(row[ci])
            if cell and cell != db_snap.value(db_row, di).strip():
                return True
        return False

    def _push_database(self, table, pk, sheet, report, remembered):
        db_snap = read_database_table(self.engine, table)
        db_pk, db_upd = db_snap.index_of(pk), db_snap.index_of(UPDATED_AT)
        pk_i, upd_i = sheet.index_of(pk), sheet.index_of(UPDATED_AT)
        positions = {}
        for i, row in enumerate(sheet.rows):
            positions.setdefault(_norm(sheet.value(row, pk_i)), i)

        appends = []
        for db_row in db_snap.rows:
            key = _norm(db_snap.value(db_row, db_pk))
            if not key:
                continue
            db_time = parse_flexible_time(db_snap.value(db_row, db_upd)) if db_upd >= 0 else None
            if db_time is None:
                logger.debug(f"{table} {pk}={key}: database updated_at is zero, not pushing")
                continue
            i = positions.get(key)
            if i is None:
                new_row = [db_snap.value(db_row, db_snap.index_of(col)) for col in sheet.columns]
                appends.append(new_row)
                positions[key] = len(sheet.rows)
                sheet.rows.append(list(new_row))
                continue
            sheet_time = parse_flexible_time(sheet.value(sheet.rows[i], upd_i)) if upd_i >= 0 else None
            if is_newer(db_time, sheet_time) or key in remembered:
                self._write_row(table, sheet, i, db_snap, db_row, report)

        if appends:
            report.rows_appended += self.mirror.append_rows(table, appends)
            logger.info(f"Appended {len(appends)} new {table} rows to the sheet")

    # ---- every table ----

    def _fill_gaps(self, table, pk, sheet_id, sheet, report):
        """Fill blank sheet cells from the DB, append missing rows, drop stale trailing rows."""
        if not sheet.columns:
            return
        db_snap = read_database_table(self.engine, table)
        key = pk if pk and sheet.index_of(pk) >= 0 else sheet.columns[0]
        key_i, db_key = sheet.index_of(key), db_snap.index_of(key)
        if key_i < 0 or db_key < 0:
            logger.debug(f"Sheet {table}: key column {key} missing on one side; skipping gap fill")
            return

        positions = {}
        for i, row in enumerate(sheet.rows):
            positions.setdefault(_norm(sheet.value(row, key_i)), i)
        column_map = [(ci, db_snap.index_of(col)) for ci, col in enumerate(sheet.columns)]

        cells, appends = [], []
        db_keys = set()
        for db_row in db_snap.rows:
            value = _norm(db_snap.value(db_row, db_key))
            if not value:
                continue
            db_keys.add(value)
            i = positions.get(value)
            if i is None:
                new_row = [db_snap.value(db_row, di) if di >= 0 else "" for _, di in column_map]
                appends.append(new_row)
                positions[value] = len(sheet.rows)
                sheet.rows.append(list(new_row))
                continue
            row = sheet.rows[i]
            for ci, di in column_map:
                if di < 0 or _norm(row[ci]):
                    continue
                db_val = db_snap.value(db_row, di)
                if db_val.strip():
                    cells.append((ci, i + 2, db_val))
                    row[ci] = db_val

        if cells:
            report.cells_written += self.mirror.update_cells(table, cells)
        if appends:
            report.rows_appended += self.mirror.append_rows(table, appends)

        db_count = len(db_snap.rows)
        if len(sheet.rows) > db_count:
            stale = [
                i for i in range(db_count, len(sheet.rows))
                if _norm(sheet.value(sheet.rows[i], key_i)) not in db_keys
            ]
            if stale == list(range(db_count, len(sheet.rows))):
                report.sheet_rows_deleted += self.mirror.delete_row_range(sheet_id, db_count + 1, len(sheet.rows) + 1)
            elif stale:
                report.sheet_rows_deleted += self.mirror.delete_rows(sheet_id, [i + 1 for i in stale])
            if stale:
                dropped = set(stale)
                sheet.rows = [row for i, row in enumerate(sheet.rows) if i not in dropped]
                logger.info(f"Sheet {table}: removed {len(stale)} trailing rows not in the database")

    # ---- derived tab ----

    def write_registrations_sheet(self):
        users = read_database_table(self.engine, "users")
        events = read_database_table(self.engine, "events")
        values = build_registration_rows(users, events)
        sheet_id = self.mirror.ensure_sheet(REGISTRATIONS_SHEET)
        self.mirror.clear(REGISTRATIONS_SHEET)
        self.mirror.overwrite(REGISTRATIONS_SHEET, values)
        self.mirror.format_header(sheet_id, len(values[0]))
        return len(values) - 1


def configured_tables(config):
    raw = config.get("SHEETS_SYNC_TABLES") or ""
    tables = [t.strip() for t in raw.split(",") if t.strip()]
    return tables or None


def build_reconciler(config, engine, service=None):
    """
    Build a Reconciler from Flask config. Raises SyncConfigurationError when
    the spreadsheet id or service-account credentials are missing.
    """
    spreadsheet_id = (config.get("SPREADSHEET_ID") or "").strip()
    if service is None:
        info = load_service_account_info(config.get("GOOGLE_SERVICE_ACCOUNT_JSON"))
        if not spreadsheet_id:
            raise SyncConfigurationError("SPREADSHEET_ID not set")
        service = build_sheets_service(info)
    elif not spreadsheet_id:
        raise SyncConfigurationError("SPREADSHEET_ID not set")
    return Reconciler(
        SheetsMirror(service, spreadsheet_id),
        engine,
        min_sheet_keys=config.get("SHEETS_DELETE_MIN_KEYS", 1),
        delete_policy=config.get("SHEETS_DELETE_POLICY", "strict"),
    )
