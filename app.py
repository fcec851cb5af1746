from dataclasses import asdict
from datetime import datetime, timezone
from functools import wraps
import json
import os
import threading

from flask import (
    Flask, Blueprint, current_app, g, jsonify, make_response, request, Response
)
from dotenv import load_dotenv

# Load environment variables from .env file BEFORE importing Config so it can read envs
load_dotenv()

from config import Config
from models import db, User, Registration, IndividualRegistration
from repositories import Repositories
from catalog import (
    CatalogError, EventCatalog, format_eligibility, import_events, parse_eligibility, slugify
)
from forms import (
    SendOTPForm, VerifyOTPForm, CompleteSignupForm, LoginForm, ProfileForm,
    ParticipantForm, EventUpdateForm, InviteForm, first_error
)
from auth import OTPAuthenticator, normalize_email
from mailer import mail, Mailer
from google_clients import SyncConfigurationError, load_service_account_info
from sheets_sync import build_reconciler, configured_tables
from sync_scheduler import SyncScheduler
from drive_backup import backup_database

api = Blueprint("api", __name__, url_prefix="/api")

PROFILE_FIELDS = (
    "fullname", "phone_number", "principals_email", "individual",
    "institution_name", "address", "principals_name",
)
EXPORT_FILES = {
    "users": "users_export.json",
    "events": "events_export.json",
    "registrations": "registrations_export.json",
    "all": "full_export.json",
}


class PortalServices:
    """Everything the request handlers and background jobs share, kept in app.extensions["portal"]."""

    def __init__(self, app, salt):
        self.repos = Repositories()
        self.catalog = EventCatalog(app.config["EVENTS_JSON_PATH"])
        self.authenticator = OTPAuthenticator(salt)
        self.mailer = Mailer()
        self.scheduler = None
        # Held by every sync cycle and backup, scheduled or inline
        self.job_lock = threading.Lock()
        # One reconciler for the life of the process; it remembers the sheet rows between cycles
        self.reconciler = None
        # Discovery clients; built from GOOGLE_SERVICE_ACCOUNT_JSON when left as None
        self.sheets_service = None
        self.drive_service = None


def services() -> PortalServices:
    return current_app.extensions["portal"]


# ==========================
# RESPONSES
# ==========================

def success(message, data=None, status=200):
    body = {"status": "success", "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def error(message, status=400):
    return jsonify({"status": "error", "error": message}), status


def json_body():
    """The request's JSON object, or None when the body is missing or not an object."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


# ==========================
# AUTH HELPERS
# ==========================

def admin_emails():
    raw = current_app.config.get("ADMIN_EMAILS") or ""
    return {normalize_email(e) for e in raw.split(",") if e.strip()}


def is_admin_email(email):
    return normalize_email(email) in admin_emails()


def login_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        email = services().authenticator.authenticated_email(request)
        if not email:
            return error("Authentication required", 401)
        g.email = email
        return view_func(*args, **kwargs)
    return wrapper


def signup_required(view_func):
    """Logged in and the account has a password."""
    @wraps(view_func)
    @login_required
    def wrapper(*args, **kwargs):
        user = services().repos.users.get(g.email)
        if user is None:
            return error("User not found", 404)
        if user.needs_signup:
            return error("Complete signup required", 403)
        g.user = user
        return view_func(*args, **kwargs)
    return wrapper


def admin_required(view_func):
    @wraps(view_func)
    @login_required
    def wrapper(*args, **kwargs):
        if not is_admin_email(g.email):
            current_app.logger.warning(f"Admin access denied for {g.email}")
            return error("Admin access required", 403)
        return view_func(*args, **kwargs)
    return wrapper


def with_auth_cookies(result, email):
    response = make_response(result)
    cfg = current_app.config
    services().authenticator.set_cookies(
        response, email, max_age=cfg["AUTH_COOKIE_MAX_AGE"], secure=cfg["COOKIE_SECURE"]
    )
    return response


# ==========================
# BACKGROUND JOBS
# ==========================

def perform_sync(portal, config):
    """One reconciliation cycle. Needs an application context."""
    if portal.reconciler is None:
        portal.reconciler = build_reconciler(config, db.engine, service=portal.sheets_service)
    return portal.reconciler.sync_all(configured_tables(config))


def perform_backup(portal, config, backup_type="scheduled", initiated_by=None):
    """Upload one database backup to Drive. Needs an application context."""
    info = None
    if portal.drive_service is None:
        info = load_service_account_info(config.get("GOOGLE_SERVICE_ACCOUNT_JSON"))
    backup_log = backup_database(
        config["SQLALCHEMY_DATABASE_URI"],
        config.get("FOLDER_ID"),
        credentials_info=info,
        backup_type=backup_type,
        initiated_by=initiated_by,
        drive_service=portal.drive_service,
    )
    portal.repos.logs.record(
        "drive_backup", f"{backup_log.file_path} uploaded as {backup_log.drive_file_id}"
    )
    return backup_log


def build_scheduler(app, scheduler=None):
    """A SyncScheduler whose jobs run inside the given app's context."""
    portal = app.extensions["portal"]

    def sync_job():
        with app.app_context():
            return perform_sync(portal, app.config)

    def backup_job():
        with app.app_context():
            perform_backup(portal, app.config)

    return SyncScheduler(
        sync_job,
        backup_fn=backup_job,
        interval=app.config["SHEETS_SYNC_INTERVAL"],
        backup_interval=app.config["DRIVE_BACKUP_INTERVAL"],
        scheduler=scheduler,
        lock=portal.job_lock,
    )


def report_to_dict(report):
    return {
        "summary": report.summary(),
        "error": report.error,
        "registration_rows": report.registration_rows,
        "failed": report.failed,
        "tables": [asdict(t) for t in report.tables],
    }


# ==========================
# EVENT HELPERS
# ==========================

def resolve_event(portal, event_id):
    """
    Database row by id or slug; otherwise the catalog entry, saved so
    registrations can point at it.
    """
    if not event_id:
        return None
    event_id = str(event_id).strip()
    event = portal.repos.events.get(event_id) or portal.repos.events.get(slugify(event_id))
    if event is not None:
        return event
    entry = portal.catalog.find(event_id)
    if entry is None:
        return None
    current_app.logger.info(f"Saving catalog event {entry['name']} as {entry['slug']}")
    return portal.repos.events.create(portal.catalog.to_model(entry))


def event_name(portal, event_id):
    event = portal.repos.events.get(event_id)
    if event is not None:
        return event.name
    entry = portal.catalog.find(event_id)
    return entry["name"] if entry else event_id


def registration_history(portal, user):
    history = []
    for record in portal.repos.registrations.list_for_user(user.id):
        history.append({
            "event_id": record.event_id,
            "event_name": event_name(portal, record.event_id),
            "status": record.status,
            "created_at": record.created_at.isoformat() if record.created_at else None,
            "updated_at": record.updated_at.isoformat() if record.updated_at else None,
        })
    return history


def validate_team(event, members):
    """Validated participant dicts, or (None, message)."""
    capacity = event.participants or 1
    if len(members) > capacity:
        return None, f"maximum {capacity} participants allowed"
    if not members:
        return None, "at least one participant required"

    bounds = parse_eligibility(event.eligibility, event.open_to_all)
    if bounds is None:
        return None, "invalid event eligibility format"

    participants = []
    for i, member in enumerate(members, start=1):
        form = ParticipantForm.build(member)
        if not form.validate():
            return None, f"participant {i}: {first_error(form)}"
        grade = form.grade.data
        if grade < bounds[0] or grade > bounds[1]:
            return None, (
                f"participant {i}: class {grade} is not eligible for this event "
                f"(eligible: {bounds[0]}-{bounds[1]})"
            )
        participants.append(form.as_participant())
    return participants, None


# ==========================
# AUTH ROUTES
# ==========================

@api.route("/auth/send-otp", methods=["POST"])
def send_otp():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = SendOTPForm()
    if not form.validate():
        return error(first_error(form), 400)

    portal = services()
    email = form.email.data
    otp = portal.authenticator.otp_for(email)
    if not portal.mailer.send_otp(email, otp, school_code=otp):
        return error("Failed to send OTP email", 500)

    user = portal.repos.users.get(email)
    if user is None:
        portal.repos.users.create(User(email=email, school_code=otp, registrations="{}"))
        current_app.logger.info(f"Created placeholder user for {email}")
    elif not user.school_code:
        user.school_code = otp
        portal.repos.users.update(user)
    return success("OTP sent successfully", {"email": email})


@api.route("/auth/verify-otp", methods=["POST"])
def verify_otp():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = VerifyOTPForm()
    if not form.validate():
        return error(first_error(form), 400)

    portal = services()
    email = form.email.data
    if not portal.authenticator.verify_otp(email, form.otp.data):
        current_app.logger.warning(f"Invalid OTP attempt for {email}")
        return error("Invalid OTP", 401)

    user = portal.repos.users.get(email)
    if user is None:
        user = portal.repos.users.create(
            User(email=email, school_code=portal.authenticator.otp_for(email), registrations="{}")
        )
    result = success("OTP verified successfully", {
        "email": email,
        "needs_signup": user.needs_signup,
        "profile_complete": user.profile_complete,
    })
    return with_auth_cookies(result, email)


@api.route("/auth/logout", methods=["POST"])
def logout():
    response = make_response(success("Logged out successfully"))
    services().authenticator.clear_cookies(response)
    return response


@api.route("/auth/complete", methods=["POST"])
@login_required
def complete_signup():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = CompleteSignupForm()
    if not form.validate():
        return error(first_error(form), 400)

    portal = services()
    user = portal.repos.users.get(g.email)
    if user is not None and not user.needs_signup:
        return error("User already exists", 409)
    taken = portal.repos.users.get_by_username(form.username.data)
    if taken is not None and taken.email != g.email:
        return error("Username already taken", 409)

    if user is None:
        user = User(email=g.email, registrations="{}")
    user.username = form.username.data
    user.set_password(form.password.data)
    portal.repos.users.update(user)
    current_app.logger.info(f"Signup completed for {g.email}")
    return success("Signup completed successfully", user.to_dict())


@api.route("/auth/profile", methods=["GET"])
@login_required
def auth_profile():
    user = services().repos.users.get(g.email)
    if user is None:
        return error("User not found", 404)
    data = user.to_dict()
    data["needs_signup"] = user.needs_signup
    data["profile_complete"] = user.profile_complete
    data["is_admin"] = is_admin_email(user.email)
    return success("Profile retrieved successfully", data)


@api.route("/users/login", methods=["POST"])
def users_login():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = LoginForm()
    if not form.validate():
        return error(first_error(form), 400)

    user = services().repos.users.get(form.email.data)
    if user is None:
        return error("User not found", 404)
    if not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed password login for {user.email}")
        return error("Invalid credentials", 401)
    return with_auth_cookies(success("Login successful", {"email": user.email}), user.email)


# ==========================
# EVENTS
# ==========================

@api.route("/events", methods=["GET"])
def list_events():
    return success("Events retrieved successfully", services().catalog.events())


@api.route("/events/<event_id>", methods=["GET"])
def get_event(event_id):
    entry = services().catalog.find(event_id)
    if entry is None:
        return error("Event not found", 404)
    return success("Event retrieved successfully", entry)


# ==========================
# USER ROUTES
# ==========================

@api.route("/user/complete", methods=["GET"])
@login_required
def profile_form():
    user = services().repos.users.get(g.email)
    if user is None:
        return error("User not found", 404)
    if user.profile_complete:
        return error("Signup already completed", 403)
    return success("Profile details required", {"email": user.email, "fields": list(PROFILE_FIELDS)})


@api.route("/user/complete", methods=["POST"])
@login_required
def complete_profile():
    portal = services()
    user = portal.repos.users.get(g.email)
    if user is None:
        return error("User not found", 404)
    if user.profile_complete:
        return error("Signup already completed", 403)
    if json_body() is None:
        return error("Invalid request format", 400)
    form = ProfileForm()
    if not form.validate():
        return error(first_error(form), 400)

    user.fullname = form.fullname.data
    user.phone_number = form.phone_number.data
    user.principals_email = form.principals_email.data
    user.individual = form.is_individual
    user.institution_name = form.institution_name.data
    user.address = form.address.data
    user.principals_name = form.principals_name.data
    portal.repos.users.update(user)

    if user.individual and portal.repos.individual_registrations.get_for_user(user.id) is None:
        portal.repos.individual_registrations.create(
            IndividualRegistration(user_id=user.id, fullname=user.fullname, user_email=user.email)
        )
    current_app.logger.info(f"Profile completed for {user.email} (individual={user.individual})")
    return success("Profile completed successfully", user.to_dict())


@api.route("/user/profile", methods=["GET"])
@signup_required
def user_profile():
    data = g.user.to_dict()
    data["registration_history"] = registration_history(services(), g.user)
    return success("Profile retrieved successfully", data)


@api.route("/user/registration_history", methods=["GET"])
@signup_required
def user_registration_history():
    return success("Registration history retrieved successfully", registration_history(services(), g.user))


@api.route("/summary", methods=["GET"])
@signup_required
def registration_summary():
    portal = services()
    user = g.user
    regs = user.get_registrations()

    events = []
    confirmed = pending = participants = 0
    for event_id in sorted(regs):
        members = regs[event_id] if isinstance(regs[event_id], list) else []
        record = portal.repos.registrations.get_for_user_event(user.id, event_id)
        status = record.status if record else "pending"
        if status == "confirmed":
            confirmed += 1
        else:
            pending += 1
        participants += len(members)
        events.append({
            "event_id": event_id,
            "event_name": event_name(portal, event_id),
            "team_name": (record.team_name if record else "") or "",
            "participants": members,
            "participant_count": len(members),
            "status": status,
        })

    data = {
        "user_info": {
            "email": user.email,
            "username": user.username or "",
            "fullname": user.fullname or "",
            "institution_name": user.institution_name or "",
            "individual": bool(user.individual),
        },
        "registrations": events,
        "total_events": len(events),
        "total_participants": participants,
        "confirmed": confirmed,
        "pending": pending,
    }
    if not events:
        return success("No registrations found", data)
    return success("Registration summary retrieved successfully", data)


# ==========================
# REGISTRATION
# ==========================

@api.route("/submit_registrations", methods=["POST"])
@signup_required
def submit_registrations():
    payload = json_body()
    if payload is None:
        return error("Invalid request format", 400)
    portal = services()
    user = g.user

    event = resolve_event(portal, payload.get("id"))
    if event is None:
        return error("Event not found", 404)
    if user.individual and not event.independent_registration:
        return error("Individual registration not allowed for this event", 403)

    members = payload.get("data")
    if not isinstance(members, list):
        return error("data must be a list of participants", 400)
    participants, message = validate_team(event, members)
    if participants is None:
        return error(message, 400)

    regs = user.get_registrations()
    regs[event.id] = participants
    user.set_registrations(regs)
    portal.repos.users.update(user)

    team_name = str(payload.get("team_name") or user.institution_name or "")
    record = portal.repos.registrations.get_for_user_event(user.id, event.id)
    if record is None:
        record = portal.repos.registrations.create(
            Registration(event_id=event.id, user_id=user.id, team_name=team_name, status="pending")
        )
    else:
        record.team_name = team_name
        portal.repos.registrations.update(record)

    current_app.logger.info(f"{user.email} registered {len(participants)} participants for {event.id}")
    return success("Registration submitted successfully", {
        "event_id": event.id,
        "participants": participants,
        "registration": record.to_dict(),
    })


# ==========================
# ADMIN ROUTES
# ==========================

@api.route("/admin/stats", methods=["GET"])
@admin_required
def admin_stats():
    portal = services()
    users = portal.repos.users.list_non_admin(is_admin_email)
    events = portal.repos.events.list()

    per_event = {event.id: {"event_id": event.id, "event_name": event.name, "registrations": 0, "participants": 0}
                 for event in events}
    user_registrations = []
    total_registrations = 0
    for user in users:
        regs = user.get_registrations()
        user_participants = 0
        for event_id, members in regs.items():
            count = len(members) if isinstance(members, list) else 0
            user_participants += count
            stats = per_event.setdefault(event_id, {
                "event_id": event_id, "event_name": event_id, "registrations": 0, "participants": 0,
            })
            stats["registrations"] += 1
            stats["participants"] += count
        total_registrations += len(regs)
        if regs:
            user_registrations.append({
                "email": user.email,
                "username": user.username or "",
                "institution_name": user.institution_name or "",
                "total_events": len(regs),
                "total_participants": user_participants,
            })

    return success("Stats retrieved successfully", {
        "total_users": len(users),
        "completed_profiles": sum(1 for u in users if u.profile_complete),
        "individual_users": sum(1 for u in users if u.individual),
        "total_events": len(events),
        "total_registrations": total_registrations,
        "event_stats": list(per_event.values()),
        "user_registrations": user_registrations,
    })


@api.route("/admin/config", methods=["GET"])
@admin_required
def admin_config():
    return success("Admin config retrieved successfully", {"admin_emails": sorted(admin_emails())})


@api.route("/admin/events/<event_id>", methods=["GET"])
@admin_required
def admin_get_event(event_id):
    event = services().repos.events.get(event_id)
    if event is None:
        return error("Event not found", 404)
    data = event.to_dict()
    bounds = parse_eligibility(event.eligibility, event.open_to_all)
    data["min_class"], data["max_class"] = bounds if bounds else (None, None)
    return success("Event retrieved successfully", data)


@api.route("/admin/events", methods=["POST"])
@admin_required
def admin_update_event():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = EventUpdateForm()
    if not form.validate():
        return error(first_error(form), 400)

    portal = services()
    event = portal.repos.events.get(form.event_id.data)
    if event is None:
        return error("Event not found", 404)

    if form.name.data:
        event.name = form.name.data
    for name in ("image", "mode", "dates", "description_short", "description_long"):
        value = getattr(form, name).data
        if value is not None:
            setattr(event, name, value)
    if form.points.data is not None:
        event.points = form.points.data
    event.participants = form.participants.data
    event.eligibility = format_eligibility(form.min_class.data, form.max_class.data)
    if form.open_to_all.data is not None:
        event.open_to_all = form.open_to_all.data in ("true", "1", "yes")
    if form.independent_registration.data is not None:
        event.independent_registration = form.independent_registration.data in ("true", "1", "yes")
    portal.repos.events.update(event)
    portal.repos.logs.record("event_updated", f"{g.email} updated {event.id}")
    return success("Event updated successfully", event.to_dict())


@api.route("/admin/events/<event_id>", methods=["DELETE"])
@admin_required
def admin_delete_event(event_id):
    portal = services()
    if not portal.repos.events.delete(event_id):
        return error("Event not found", 404)
    portal.repos.logs.record("event_deleted", f"{g.email} deleted {event_id}")
    return success("Event deleted successfully", {"id": event_id})


@api.route("/admin/users", methods=["GET"])
@admin_required
def admin_get_user():
    email = normalize_email(request.args.get("email"))
    if not email:
        return error("email is required", 400)
    user = services().repos.users.get(email)
    if user is None:
        return error("User not found", 404)
    return success("User retrieved successfully", user.to_dict())


@api.route("/admin/event-registrations", methods=["GET"])
@admin_required
def admin_event_registrations():
    event_id = (request.args.get("event_id") or "").strip()
    if not event_id:
        return error("event_id is required", 400)
    portal = services()
    name = event_name(portal, event_id)
    records = {r.user_id: r for r in portal.repos.registrations.list_for_event(event_id)}

    rows = []
    for user in portal.repos.users.list_non_admin(is_admin_email):
        members = user.get_registrations().get(event_id)
        if members is None:
            continue
        members = members if isinstance(members, list) else []
        record = records.get(user.id)
        rows.append({
            "eventId": event_id,
            "eventName": name,
            "userEmail": user.email,
            "userName": user.username or "",
            "teamName": (record.team_name if record else "") or user.institution_name or "",
            "members": members,
            "memberCount": len(members),
            "createdAt": record.created_at.isoformat() if record and record.created_at else None,
            "status": record.status if record else "pending",
        })
    return success("Event registrations retrieved successfully", rows)


@api.route("/admin/export", methods=["GET"])
@admin_required
def admin_export():
    export_type = (request.args.get("type") or "all").strip().lower()
    if export_type not in EXPORT_FILES:
        return error("Invalid export type", 400)
    portal = services()

    def users():
        return [u.to_dict() for u in portal.repos.users.list()]

    def events():
        return [e.to_dict() for e in portal.repos.events.list()]

    def registrations():
        return [r.to_dict() for r in portal.repos.registrations.list()]

    if export_type == "users":
        data = users()
    elif export_type == "events":
        data = events()
    elif export_type == "registrations":
        data = registrations()
    else:
        data = {"users": users(), "events": events(), "registrations": registrations()}

    current_app.logger.info(f"{g.email} exported {export_type}")
    return Response(
        json.dumps(data, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILES[export_type]}"},
    )


@api.route("/admin/send-invite", methods=["POST"])
@admin_required
def admin_send_invite():
    if json_body() is None:
        return error("Invalid request format", 400)
    form = InviteForm()
    if not form.validate():
        return error(first_error(form), 400)

    portal = services()
    email = form.to_email.data
    school_name = form.school_name.data or ""
    user = portal.repos.users.get(email)
    if user is None:
        portal.repos.users.create(User(email=email, institution_name=school_name or None, registrations="{}"))
    elif school_name and not user.institution_name:
        user.institution_name = school_name
        portal.repos.users.update(user)

    sent = portal.mailer.send_invite(
        email, school_name, form.principal_name.data or "", form.custom_message.data or ""
    )
    if not sent:
        return error("Failed to send invite", 500)
    portal.repos.logs.record("invite_sent", f"{g.email} invited {email}")
    return success("Invite sent successfully", {"to_email": email})


@api.route("/admin/import_events", methods=["POST"])
@admin_required
def admin_import_events():
    portal = services()
    created, updated = import_events(portal.catalog, portal.repos.events)
    portal.repos.logs.record("events_imported", f"{g.email} imported events: {created} created, {updated} updated")
    return success("Events imported successfully", {"created": created, "updated": updated})


@api.route("/admin/sheets-sync", methods=["POST"])
@admin_required
def admin_sheets_sync():
    portal = services()
    portal.repos.logs.record("sheets_sync_requested", g.email)
    if portal.scheduler is not None and portal.scheduler.running:
        if portal.scheduler.trigger_now():
            return success("Sheets sync triggered", {"triggered": True}, 202)
        return success("Sheets sync already pending", {"triggered": False}, 202)

    try:
        with portal.job_lock:
            report = perform_sync(portal, current_app.config)
    except SyncConfigurationError as e:
        return error(f"Sheets sync not configured: {e}", 503)
    if report.error:
        return error(f"Sheets sync aborted: {report.error}", 502)
    return success("Sheets sync completed", report_to_dict(report))


@api.route("/admin/backup", methods=["POST"])
@admin_required
def admin_backup():
    portal = services()
    try:
        with portal.job_lock:
            backup_log = perform_backup(portal, current_app.config, backup_type="manual", initiated_by=g.email)
    except SyncConfigurationError as e:
        return error(f"Backup not configured: {e}", 503)
    except Exception as e:
        current_app.logger.error(f"Manual backup failed: {e}")
        return error(f"Backup failed: {e}", 500)
    return success("Backup uploaded successfully", {
        "backup_id": backup_log.id,
        "file": backup_log.file_path,
        "drive_file_id": backup_log.drive_file_id,
        "size": backup_log.file_size,
        "checksum": backup_log.checksum,
    })


@api.route("/admin/logs", methods=["GET"])
@admin_required
def admin_logs():
    return success("Logs retrieved successfully", [entry.to_dict() for entry in services().repos.logs.list()])


# ==========================
# HEALTH
# ==========================

@api.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "message": "Server is running",
        "data": {"timestamp": datetime.now(timezone.utc).isoformat()},
    })


@api.errorhandler(CatalogError)
def catalog_error(e):
    current_app.logger.error(f"Event catalog error: {e}")
    return error(str(e), 500)


# ==========================
# CLI COMMANDS
# ==========================

def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """
        Create the tables and load the event catalog.
        Run with: flask --app app init-db
        """
        db.create_all()
        portal = app.extensions["portal"]
        created, updated = import_events(portal.catalog, portal.repos.events)
        print(f"Imported events: {created} created, {updated} updated.")
        print("Database initialized.")

    @app.cli.command("import-events")
    def import_events_command():
        """Refresh the events table from events.json."""
        portal = app.extensions["portal"]
        created, updated = import_events(portal.catalog, portal.repos.events)
        print(f"Imported events: {created} created, {updated} updated.")

    @app.cli.command("sync-sheets")
    def sync_sheets_command():
        """
        Run one reconciliation cycle against the spreadsheet.
        Run with: flask --app app sync-sheets
        """
        portal = app.extensions["portal"]
        with portal.job_lock:
            report = perform_sync(portal, app.config)
        print(report.summary())

    @app.cli.command("backup-db")
    def backup_db_command():
        """Upload one database backup to the Drive folder."""
        portal = app.extensions["portal"]
        with portal.job_lock:
            backup_log = perform_backup(portal, app.config, backup_type="manual")
        print(f"Backup uploaded: {backup_log.file_path} ({backup_log.file_size} bytes) id={backup_log.drive_file_id}")


# ==========================
# APP FACTORY
# ==========================

def create_app(config_class=Config, start_scheduler=True):
    app = Flask(__name__)
    app.config.from_object(config_class)

    salt = app.config.get("AUTH_SALT")
    if not salt:
        if not app.config.get("TESTING"):
            raise RuntimeError("AUTH_SALT must be set")
        app.logger.warning("AUTH_SALT not set; using a throwaway salt for testing")
        salt = "testing-salt"

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///") and ":memory:" not in uri:
        os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)

    db.init_app(app)
    mail.init_app(app)
    app.extensions["portal"] = PortalServices(app, salt)
    app.register_blueprint(api)
    register_commands(app)

    with app.app_context():
        db.create_all()

    if start_scheduler and app.config.get("SHEETS_SYNC_ENABLED") and not app.config.get("TESTING"):
        portal = app.extensions["portal"]
        portal.scheduler = build_scheduler(app)
        portal.scheduler.start()
        app.logger.info("Sheets sync scheduler started in the web process")

    return app
