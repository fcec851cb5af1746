from datetime import datetime
import json

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


# ==========================
# MODELS
# ==========================

class User(db.Model):
    """
    A school (or individual) account.
    - Created as a placeholder the first time an OTP is requested.
    - needs_signup until a password is set; profile_complete once the school details are filled in.
    """
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)  # Sheet key for the users tab
    password_hash = db.Column(db.String(255), nullable=True)
    school_code = db.Column(db.String(32), nullable=True)
    fullname = db.Column(db.String(255), nullable=True)
    phone_number = db.Column(db.String(20), nullable=True)
    principals_email = db.Column(db.String(255), nullable=True)
    individual = db.Column(db.Boolean, default=False)
    institution_name = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    principals_name = db.Column(db.String(255), nullable=True)
    registrations = db.Column(db.Text, default="{}")  # JSON: event id -> list of participants
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def needs_signup(self):
        return not self.password_hash

    @property
    def profile_complete(self):
        return bool(self.fullname)

    def get_registrations(self):
        """Decode the registrations column; damaged JSON reads as no registrations."""
        raw = self.registrations or ""
        if not raw or raw == "{}":
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def set_registrations(self, registrations):
        self.registrations = json.dumps(registrations or {})

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username or "",
            "email": self.email,
            "school_code": self.school_code or "",
            "fullname": self.fullname or "",
            "phone_number": self.phone_number or "",
            "principals_email": self.principals_email or "",
            "individual": bool(self.individual),
            "institution_name": self.institution_name or "",
            "address": self.address or "",
            "principals_name": self.principals_name or "",
            "registrations": self.get_registrations(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Event(db.Model):
    """
    A competition in the catalog. The id is the slug of the event name.
    eligibility is either "[min,max]" JSON, "Grades a–b" or "Open to all".
    """
    __tablename__ = "events"

    id = db.Column(db.String(120), primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    image = db.Column(db.String(500), nullable=True)
    open_to_all = db.Column(db.Boolean, default=False)
    eligibility = db.Column(db.String(64), nullable=True)
    participants = db.Column(db.Integer, default=1)  # Team capacity
    mode = db.Column(db.String(32), default="online")
    independent_registration = db.Column(db.Boolean, default=True)
    points = db.Column(db.Integer, default=0)
    dates = db.Column(db.String(255), nullable=True)
    description_long = db.Column(db.Text, nullable=True)
    description_short = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "image": self.image or "",
            "open_to_all": bool(self.open_to_all),
            "eligibility": self.eligibility or "",
            "participants": self.participants or 0,
            "mode": self.mode or "",
            "independent_registration": bool(self.independent_registration),
            "points": self.points or 0,
            "dates": self.dates or "",
            "description_long": self.description_long or "",
            "description_short": self.description_short or "",
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Registration(db.Model):
    """One submitted team (or solo entry) for an event."""
    __tablename__ = "registrations"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(120), db.ForeignKey("events.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    team_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), default="pending")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "team_name": self.team_name or "",
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class IndividualRegistration(db.Model):
    __tablename__ = "individual_registrations"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    fullname = db.Column(db.String(255), nullable=True)
    user_email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "fullname": self.fullname or "",
            "user_email": self.user_email or "",
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class LogEntry(db.Model):
    """
    Operational trail shown on the admin log page: admin actions, invites, sync and backup outcomes.
    """
    __tablename__ = "logs"

    id = db.Column(db.Integer, primary_key=True)
    reason = db.Column(db.String(100), nullable=False, index=True)
    content = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "reason": self.reason,
            "content": self.content or "",
            "created_at": _iso(self.created_at),
        }


class BackupLog(db.Model):
    """
    Track database backup operations.
    """
    __tablename__ = "backup_logs"

    id = db.Column(db.Integer, primary_key=True)
    backup_type = db.Column(db.String(20), nullable=False)  # manual, scheduled
    file_path = db.Column(db.String(500), nullable=True)
    drive_file_id = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.BigInteger, nullable=True)
    checksum = db.Column(db.String(64), nullable=True)  # SHA-256
    status = db.Column(db.String(20), nullable=False, default='started')  # started, completed, failed
    error_message = db.Column(db.Text, nullable=True)
    initiated_by = db.Column(db.String(255), nullable=True)  # admin email, None for scheduled runs
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)


def _iso(value):
    return value.isoformat() if value else None
