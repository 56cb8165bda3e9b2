"""
Visitor and access log records.

Field names are Pythonic; `to_row()` / `from_row()` translate to the column
names of the hosted tables (`Visitor`, `AccessLog`), which the JSON-file
backend reuses so both backends share one on-disk/on-wire shape.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

# Values the browser form used to leak into the collaborator column
_EMPTY_COLLABORATOR_VALUES = {"", "null", "undefined", "none"}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_collaborator(value) -> str:
    """Return the collaborator name, or "" when absent.

    None, whitespace-only strings and the literals "null"/"undefined" all
    collapse to "". Applied on both write and read so old rows stored as
    NULL display the same as new ones.
    """
    if value is None:
        return ""
    text = str(value).strip()
    if text.lower() in _EMPTY_COLLABORATOR_VALUES:
        return ""
    return text


@dataclass
class Visitor:
    id: str
    name: str
    national_id: str
    photo_ref: str = ""
    is_banned: bool = False
    ban_reason: str | None = None
    visit_count: int = 0
    last_entry_at: str | None = None
    last_apartment_visited: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Visitor":
        is_banned = bool(row.get("isBanned") or False)
        return cls(
            id=str(row.get("id") or ""),
            name=row.get("name") or "",
            national_id=row.get("cpf") or "",
            photo_ref=row.get("photo") or "",
            is_banned=is_banned,
            ban_reason=(row.get("banReason") or None) if is_banned else None,
            visit_count=int(row.get("visitCount") or 0),
            last_entry_at=row.get("lastEntrance"),
            last_apartment_visited=row.get("visitingApartment"),
            created_at=row.get("createdAt"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cpf": self.national_id,
            "photo": self.photo_ref,
            "isBanned": self.is_banned,
            "banReason": self.ban_reason,
            "visitCount": self.visit_count,
            "lastEntrance": self.last_entry_at,
            "visitingApartment": self.last_apartment_visited,
            "createdAt": self.created_at,
        }


@dataclass
class AccessLogEntry:
    id: str
    visitor_id: str
    destination_apartment: str
    authorized_by: str
    collaborator: str = ""
    photo_ref: str = ""
    timestamp: str = field(default_factory=utc_now_iso)
    created_at: str | None = None

    def __post_init__(self):
        self.collaborator = normalize_collaborator(self.collaborator)

    @classmethod
    def from_row(cls, row: dict) -> "AccessLogEntry":
        timestamp = row.get("lastAccess") or row.get("createdAt") or ""
        return cls(
            id=str(row.get("id") or ""),
            visitor_id=str(row.get("visitorId") or ""),
            destination_apartment=row.get("going_to_ap") or "",
            authorized_by=row.get("authBy") or "",
            collaborator=row.get("colaborador"),
            photo_ref=row.get("photoPath") or "",
            timestamp=timestamp,
            created_at=row.get("createdAt"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "visitorId": self.visitor_id,
            "going_to_ap": self.destination_apartment,
            "authBy": self.authorized_by,
            "colaborador": normalize_collaborator(self.collaborator),
            "photoPath": self.photo_ref,
            "lastAccess": self.timestamp,
            "createdAt": self.created_at,
        }


@dataclass
class EntranceRecord:
    """What the front-desk screen shows after a successful registration."""

    entry_id: str
    visitor_id: str
    name: str
    national_id: str
    apartment: str
    authorized_by: str
    collaborator: str
    entry_time: str
    photo_url: str | None = None
    photo_degraded: bool = False
    new_visitor: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LogView:
    """An access log entry joined with its visitor for the recent-entries list."""

    entry: AccessLogEntry
    name: str
    national_id: str
    photo_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.entry.id,
            "visitor_id": self.entry.visitor_id,
            "name": self.name,
            "national_id": self.national_id,
            "apartment": self.entry.destination_apartment,
            "authorized_by": self.entry.authorized_by,
            "collaborator": self.entry.collaborator,
            "entry_time": self.entry.timestamp,
            "photo_url": self.photo_url,
        }
