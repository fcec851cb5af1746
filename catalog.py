"""
Event catalog shipped as data/events.json.

The file keeps one map per attribute, each keyed by the event's display
name, plus a "default" block:

    {"events": {"Crossword": "/img/crossword.png", ...},
     "descriptions": {"Crossword": {"short": "...", "long": "..."}},
     "participants": {...}, "mode": {...}, "points": {...},
     "individual": {...}, "eligibility": {"Crossword": [6, 12]},
     "open_to_all": {...}, "default": {...}}
"""
import json
import re

from models import Event

MIN_CLASS = 1
MAX_CLASS = 12

_RANGE = re.compile(r"(\d+)\s*[-–—]\s*(\d+)")


def slugify(value):
    value = (value or "").lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    return value.strip("-")


def parse_eligibility(value, open_to_all=False):
    """
    Return the (min_class, max_class) an event accepts, or None when unknown.
    Accepts "[6,12]" JSON, "Grades 6–12" / "6-12", "Open to all", or a list.
    """
    if open_to_all:
        return (MIN_CLASS, MAX_CLASS)
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) < 2:
            return None
        try:
            return (int(value[0]), int(value[1]))
        except (TypeError, ValueError):
            return None

    value = str(value).strip()
    if not value:
        return None
    if value.lower() == "open to all":
        return (MIN_CLASS, MAX_CLASS)
    if value.startswith("["):
        try:
            return parse_eligibility(json.loads(value))
        except ValueError:
            return None
    match = _RANGE.search(value)
    if match:
        return (int(match.group(1)), int(match.group(2)))
    return None


def format_eligibility(min_class, max_class):
    """Stored form used by the admin editor."""
    return json.dumps([int(min_class), int(max_class)], separators=(",", ":"))


class CatalogError(Exception):
    pass


class EventCatalog:
    def __init__(self, path):
        self.path = path

    def _load(self):
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as exc:
            raise CatalogError("Failed to read events.json") from exc
        except ValueError as exc:
            raise CatalogError("Failed to parse events.json") from exc

    def events(self):
        """Every catalog event in file order, defaults applied."""
        raw = self._load()
        default = raw.get("default") or {}
        default_desc = default.get("descriptions") or {}
        events = []
        for name, image in (raw.get("events") or {}).items():
            desc = (raw.get("descriptions") or {}).get(name) or {}
            open_to_all = (raw.get("open_to_all") or {}).get(name, default.get("open_to_all", False))
            eligibility = (raw.get("eligibility") or {}).get(name, default.get("eligibility"))
            events.append({
                "id": name,
                "name": name,
                "slug": slugify(name),
                "image": image or "",
                "description_short": desc.get("short") or default_desc.get("short", ""),
                "description_long": desc.get("long") or default_desc.get("long", ""),
                "participants": (raw.get("participants") or {}).get(name, default.get("participants", 1)),
                "mode": (raw.get("mode") or {}).get(name, default.get("mode", "online")),
                "points": (raw.get("points") or {}).get(name, default.get("points", 0)),
                "individual": (raw.get("individual") or {}).get(
                    name, default.get("independent_registrations", True)
                ),
                "eligibility": eligibility,
                "open_to_all": bool(open_to_all),
                "dates": default.get("dates", ""),
            })
        return events

    def find(self, event_id):
        """Look an event up by display name or slug."""
        if not event_id:
            return None
        for event in self.events():
            if event["name"] == event_id or event["slug"] == event_id:
                return event
        return None

    def to_model(self, entry):
        """Build an (unsaved) Event row for a catalog entry, keyed by slug."""
        if entry["open_to_all"]:
            eligibility = "Open to all"
        else:
            bounds = parse_eligibility(entry["eligibility"])
            eligibility = f"Grades {bounds[0]}–{bounds[1]}" if bounds else ""
        return Event(
            id=entry["slug"],
            name=entry["name"],
            image=entry["image"],
            open_to_all=entry["open_to_all"],
            eligibility=eligibility,
            participants=int(entry["participants"] or 1),
            mode=entry["mode"],
            independent_registration=bool(entry["individual"]),
            points=int(entry["points"] or 0),
            dates=entry["dates"],
            description_short=entry["description_short"],
            description_long=entry["description_long"],
        )


_IMPORTED_FIELDS = (
    "name", "image", "open_to_all", "eligibility", "participants", "mode",
    "independent_registration", "points", "dates", "description_short", "description_long",
)


def import_events(catalog, events_repo):
    """Create or refresh an events row for every catalog entry. Returns (created, updated)."""
    created = updated = 0
    for entry in catalog.events():
        fresh = catalog.to_model(entry)
        existing = events_repo.get(fresh.id)
        if existing is None:
            events_repo.create(fresh)
            created += 1
            continue
        for name in _IMPORTED_FIELDS:
            setattr(existing, name, getattr(fresh, name))
        events_repo.update(existing)
        updated += 1
    return created, updated
