import json
import threading

import pytest

from app import build_scheduler
from conftest import ADMIN_EMAIL, SCHOOL_EMAIL, FakeDriveService, FakeSheetsService
from mailer import mail
from models import db, BackupLog, Event, LogEntry, User


@pytest.fixture
def admin(client, login):
    login(ADMIN_EMAIL)
    return client


@pytest.fixture
def registered_school(app, client, school):
    member = {"name": "Kabir Mehta", "email": "kabir@dpsrkp.net", "class": 10, "phone": "9876543210"}
    resp = client.post("/api/submit_registrations", json={"id": "Quiz", "data": [member, member]})
    assert resp.status_code == 200
    return school


def test_admin_routes_need_an_admin(client, login):
    assert client.get("/api/admin/stats").status_code == 401
    login(SCHOOL_EMAIL)
    resp = client.get("/api/admin/stats")
    assert resp.status_code == 403
    assert resp.get_json()["status"] == "error"


def test_stats_exclude_admin_accounts(registered_school, admin):
    data = admin.get("/api/admin/stats").get_json()["data"]

    assert data["total_users"] == 1
    assert data["completed_profiles"] == 1
    assert data["total_registrations"] == 1
    quiz = next(e for e in data["event_stats"] if e["event_id"] == "quiz")
    assert quiz["registrations"] == 1
    assert quiz["participants"] == 2
    assert data["user_registrations"][0]["total_participants"] == 2


def test_admin_config(admin):
    assert admin.get("/api/admin/config").get_json()["data"]["admin_emails"] == [ADMIN_EMAIL]


def test_import_and_edit_events(app, admin):
    resp = admin.post("/api/admin/import_events")
    assert resp.get_json()["data"] == {"created": 8, "updated": 0}

    event = admin.get("/api/admin/events/junior-quiz").get_json()["data"]
    assert (event["min_class"], event["max_class"]) == (6, 8)

    resp = admin.post("/api/admin/events", json={
        "event_id": "junior-quiz",
        "participants": 3,
        "min_class": 5,
        "max_class": 8,
        "dates": "14 November",
        "open_to_all": "false",
        "independent_registration": "true",
    })
    assert resp.status_code == 200, resp.get_json()
    with app.app_context():
        event = db.session.get(Event, "junior-quiz")
        assert event.eligibility == "[5,8]"
        assert event.participants == 3
        assert event.dates == "14 November"
        assert event.name == "Junior Quiz"
        assert LogEntry.query.filter_by(reason="event_updated").count() == 1


def test_event_update_validation(admin):
    admin.post("/api/admin/import_events")
    resp = admin.post("/api/admin/events", json={"event_id": "quiz", "participants": 2, "min_class": 10, "max_class": 9})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "min_class must not exceed max_class"

    resp = admin.post("/api/admin/events", json={"event_id": "nope", "participants": 2, "min_class": 1, "max_class": 9})
    assert resp.status_code == 404


def test_delete_event(app, admin):
    admin.post("/api/admin/import_events")
    assert admin.delete("/api/admin/events/gaming").status_code == 200
    assert admin.delete("/api/admin/events/gaming").status_code == 404
    with app.app_context():
        assert db.session.get(Event, "gaming") is None


def test_user_lookup(registered_school, admin):
    assert admin.get("/api/admin/users").status_code == 400
    assert admin.get("/api/admin/users?email=nobody@dpsrkp.net").status_code == 404
    data = admin.get(f"/api/admin/users?email={SCHOOL_EMAIL.upper()}").get_json()["data"]
    assert data["username"] == "dpsrkp"


def test_event_registrations(registered_school, admin):
    assert admin.get("/api/admin/event-registrations").status_code == 400
    rows = admin.get("/api/admin/event-registrations?event_id=quiz").get_json()["data"]

    assert len(rows) == 1
    row = rows[0]
    assert row["eventName"] == "Quiz"
    assert row["userEmail"] == SCHOOL_EMAIL
    assert row["memberCount"] == 2
    assert row["status"] == "pending"
    assert row["teamName"] == "DELHI PUBLIC SCHOOL RK PURAM"


@pytest.mark.parametrize("kind, filename", [
    ("users", "users_export.json"),
    ("events", "events_export.json"),
    ("registrations", "registrations_export.json"),
    ("all", "full_export.json"),
])
def test_export(registered_school, admin, kind, filename):
    resp = admin.get(f"/api/admin/export?type={kind}")

    assert resp.status_code == 200
    assert resp.headers["Content-Disposition"] == f"attachment; filename={filename}"
    data = json.loads(resp.get_data(as_text=True))
    if kind == "all":
        assert set(data) == {"users", "events", "registrations"}
    else:
        assert isinstance(data, list) and data


def test_export_rejects_unknown_type(admin):
    assert admin.get("/api/admin/export?type=passwords").status_code == 400


def test_send_invite(app, admin):
    with mail.record_messages() as outbox:
        resp = admin.post("/api/admin/send-invite", json={
            "to_email": "principal@vasantvalley.edu.in",
            "school_name": "Vasant Valley School",
            "principal_name": "Dr. Arun Kapoor",
            "custom_message": "Looking forward to seeing your teams.",
        })

    assert resp.status_code == 200, resp.get_json()
    assert len(outbox) == 1
    assert "Registration Invite" in outbox[0].subject
    assert "Looking forward to seeing your teams." in outbox[0].html
    with app.app_context():
        user = User.query.filter_by(email="principal@vasantvalley.edu.in").first()
        assert user.institution_name == "Vasant Valley School"
        assert user.needs_signup


def test_manual_sheets_sync_runs_inline_without_scheduler(app, admin, portal):
    portal.sheets_service = FakeSheetsService()
    resp = admin.post("/api/admin/sheets-sync")

    assert resp.status_code == 200, resp.get_json()
    data = resp.get_json()["data"]
    assert data["failed"] == []
    assert "users" in portal.sheets_service.tabs
    assert "usr_reg" in portal.sheets_service.tabs


def test_manual_sheets_sync_reports_unreachable_api(admin, portal):
    portal.sheets_service = FakeSheetsService()
    portal.sheets_service.offline = True
    resp = admin.post("/api/admin/sheets-sync")

    assert resp.status_code == 502
    assert "Network is unreachable" in resp.get_json()["error"]


def test_manual_sheets_sync_reports_missing_configuration(admin):
    resp = admin.post("/api/admin/sheets-sync")
    assert resp.status_code == 503
    assert "GOOGLE_SERVICE_ACCOUNT_JSON" in resp.get_json()["error"]


def test_manual_sheets_sync_triggers_running_scheduler(admin, portal):
    class RunningScheduler:
        running = True

        def __init__(self):
            self.triggers = 0

        def trigger_now(self):
            self.triggers += 1
            return self.triggers == 1

    portal.scheduler = RunningScheduler()
    first = admin.post("/api/admin/sheets-sync")
    second = admin.post("/api/admin/sheets-sync")

    assert first.status_code == 202
    assert first.get_json()["data"]["triggered"] is True
    assert second.get_json()["data"]["triggered"] is False


def test_manual_backup(app, admin, portal):
    portal.drive_service = FakeDriveService()
    resp = admin.post("/api/admin/backup")

    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()["data"]["drive_file_id"] == "drive-file-1"
    with app.app_context():
        backup_log = BackupLog.query.one()
        assert backup_log.initiated_by == ADMIN_EMAIL
        assert backup_log.backup_type == "manual"

    logs = admin.get("/api/admin/logs").get_json()["data"]
    assert logs[0]["reason"] == "drive_backup"


def test_manual_backup_failure(admin, portal):
    portal.drive_service = FakeDriveService(fail=True)
    resp = admin.post("/api/admin/backup")
    assert resp.status_code == 500
    assert resp.get_json()["error"].startswith("Backup failed")


def test_manual_backup_waits_for_a_running_job(admin, portal):
    portal.drive_service = FakeDriveService()
    responses = []

    with portal.job_lock:
        worker = threading.Thread(target=lambda: responses.append(admin.post("/api/admin/backup")))
        worker.start()
        worker.join(0.2)
        assert worker.is_alive()
        assert portal.drive_service.uploads == []
    worker.join(5)

    assert responses[0].status_code == 200
    assert len(portal.drive_service.uploads) == 1


def test_scheduled_jobs_share_the_request_lock(app, portal):
    portal.drive_service = FakeDriveService()
    scheduler = build_scheduler(app)

    with portal.job_lock:
        worker = threading.Thread(target=scheduler.run_backup)
        worker.start()
        worker.join(0.2)
        assert worker.is_alive()
    worker.join(5)

    assert len(portal.drive_service.uploads) == 1
