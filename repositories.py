"""
Typed data access for the portal.

Each repository wraps one model and exposes the same small surface:
get / create / update / delete / list. Keys are the natural lookup
value for the table (users by email, events by slug, the rest by id).
"""
from datetime import datetime

from models import (
    db, User, Event, Registration, IndividualRegistration, LogEntry
)


class Repository:
    model = None
    key_column = "id"

    def _key_attr(self):
        return getattr(self.model, self.key_column)

    def get(self, key):
        if key is None or key == "":
            return None
        return self.model.query.filter(self._key_attr() == key).first()

    def create(self, record):
        db.session.add(record)
        db.session.commit()
        return record

    def update(self, record):
        if hasattr(record, "updated_at"):
            record.updated_at = datetime.utcnow()
        db.session.add(record)
        db.session.commit()
        return record

    def delete(self, key):
        record = self.get(key)
        if record is None:
            return False
        db.session.delete(record)
        db.session.commit()
        return True

    def list(self):
        return self.model.query.order_by(self._key_attr()).all()


class UserRepository(Repository):
    model = User
    key_column = "email"

    def get(self, key):
        if not key:
            return None
        return User.query.filter(User.email == key.strip().lower()).first()

    def get_by_username(self, username):
        if not username:
            return None
        return User.query.filter(User.username == username).first()

    def list_non_admin(self, is_admin):
        """Every user whose email is not an admin address."""
        return [u for u in self.list() if not is_admin(u.email)]


class EventRepository(Repository):
    model = Event


class RegistrationRepository(Repository):
    model = Registration

    def list_for_user(self, user_id):
        return (
            Registration.query.filter_by(user_id=user_id)
            .order_by(Registration.created_at.desc())
            .all()
        )

    def list_for_event(self, event_id):
        return (
            Registration.query.filter_by(event_id=event_id)
            .order_by(Registration.created_at.asc())
            .all()
        )

    def get_for_user_event(self, user_id, event_id):
        return Registration.query.filter_by(user_id=user_id, event_id=event_id).first()


class IndividualRegistrationRepository(Repository):
    model = IndividualRegistration

    def get_for_user(self, user_id):
        return IndividualRegistration.query.filter_by(user_id=user_id).first()


class LogRepository(Repository):
    model = LogEntry

    def record(self, reason, content=None):
        entry = LogEntry(reason=reason, content=content)
        db.session.add(entry)
        db.session.commit()
        return entry

    def list(self, limit=200):
        return LogEntry.query.order_by(LogEntry.created_at.desc()).limit(limit).all()


class Repositories:
    """The bundle handed to request handlers."""

    def __init__(self):
        self.users = UserRepository()
        self.events = EventRepository()
        self.registrations = RegistrationRepository()
        self.individual_registrations = IndividualRegistrationRepository()
        self.logs = LogRepository()
