"""
Capability interfaces consumed by the entrance workflow, plus the in-memory
backend.

Every store call returns a StoreResult instead of raising. `error` non-None
signals failure; otherwise `data` is authoritative. Callers branch on
`error`, never on exceptions. `conflict` is set when a create hits the
national-ID uniqueness rule, so the caller can re-resolve instead of failing.

Backends share one row layout (see models.to_row) held in a MemoryDatabase.
The in-memory backend never persists; portaria.local_store subclasses the
database to commit rows to a JSON file.
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

from portaria.models import AccessLogEntry, Visitor

logger = logging.getLogger(__name__)

# Visitor field -> column, used to translate partial updates
VISITOR_COLUMNS = {
    "name": "name",
    "national_id": "cpf",
    "photo_ref": "photo",
    "is_banned": "isBanned",
    "ban_reason": "banReason",
    "visit_count": "visitCount",
    "last_entry_at": "lastEntrance",
    "last_apartment_visited": "visitingApartment",
}


def visitor_changes_to_row(changes: dict) -> dict:
    """Translate a {field: value} update into column names."""
    unknown = set(changes) - set(VISITOR_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update visitor fields: {sorted(unknown)}")
    return {VISITOR_COLUMNS[k]: v for k, v in changes.items()}


@dataclass
class StoreResult:
    data: Any = None
    error: str | None = None
    conflict: bool = False

    @classmethod
    def ok(cls, data: Any = None) -> "StoreResult":
        return cls(data=data)

    @classmethod
    def failure(cls, error: str, conflict: bool = False) -> "StoreResult":
        return cls(data=None, error=error or "unknown store error", conflict=conflict)


class VisitorStore(Protocol):
    async def find_by_national_id(self, national_id: str) -> StoreResult: ...

    async def find_banned(self, national_id: str) -> StoreResult: ...

    async def get(self, visitor_id: str) -> StoreResult: ...

    async def create(self, visitor: Visitor) -> StoreResult: ...

    async def update(self, visitor_id: str, changes: dict) -> StoreResult: ...

    async def list_all(self) -> StoreResult: ...


class AccessLogStore(Protocol):
    async def create(self, entry: AccessLogEntry) -> StoreResult: ...

    async def list_recent(self, limit: int) -> StoreResult: ...


class ObjectStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> StoreResult: ...

    def get_public_url(self, path: str) -> str: ...


# =============================================================================
# In-memory backend
# =============================================================================


class MemoryDatabase:
    """Rows for both tables.

    Reads call `refresh()` first; every write runs inside `transaction()`,
    which restores the previous rows if the change or `commit()` fails.
    Subclasses override `refresh()` and `commit()` to sync with storage.
    """

    def __init__(self, visitors: list[dict] = None, access_logs: list[dict] = None):
        self._load(visitors or [], access_logs or [])

    def _load(self, visitors: list[dict], access_logs: list[dict]) -> None:
        self.visitors: dict[str, dict] = {str(row["id"]): dict(row) for row in visitors}
        self.access_logs: list[dict] = [dict(row) for row in access_logs]

    def refresh(self) -> None:
        """Pick up rows written by others. No-op for the pure in-memory database."""

    def commit(self) -> None:
        """No-op for the pure in-memory database."""

    @contextmanager
    def transaction(self):
        visitors = copy.deepcopy(self.visitors)
        access_logs = copy.deepcopy(self.access_logs)
        try:
            yield self
            if self.visitors != visitors or self.access_logs != access_logs:
                self.commit()
        except BaseException:
            self.visitors, self.access_logs = visitors, access_logs
            raise

    def snapshot(self) -> dict:
        return {
            "visitors": list(self.visitors.values()),
            "access_logs": list(self.access_logs),
        }


class InMemoryVisitorStore:
    def __init__(self, db: MemoryDatabase = None):
        self._db = db if db is not None else MemoryDatabase()

    def _match(self, national_id: str, banned_only: bool = False) -> StoreResult:
        matches = [
            row for row in self._db.visitors.values()
            if row.get("cpf") == national_id and (not banned_only or row.get("isBanned"))
        ]
        if len(matches) > 1:
            return StoreResult.failure(f"{len(matches)} visitors share national ID {national_id}")
        return StoreResult.ok(Visitor.from_row(matches[0]) if matches else None)

    async def find_by_national_id(self, national_id: str) -> StoreResult:
        self._db.refresh()
        return self._match(national_id)

    async def find_banned(self, national_id: str) -> StoreResult:
        self._db.refresh()
        return self._match(national_id, banned_only=True)

    async def get(self, visitor_id: str) -> StoreResult:
        self._db.refresh()
        row = self._db.visitors.get(visitor_id)
        return StoreResult.ok(Visitor.from_row(row) if row else None)

    async def create(self, visitor: Visitor) -> StoreResult:
        with self._db.transaction() as db:
            if visitor.id in db.visitors:
                return StoreResult.failure(f"Visitor id already exists: {visitor.id}", conflict=True)
            if any(row.get("cpf") == visitor.national_id for row in db.visitors.values()):
                return StoreResult.failure(
                    f"Visitor with national ID {visitor.national_id} already exists", conflict=True
                )
            db.visitors[visitor.id] = visitor.to_row()
        return StoreResult.ok(Visitor.from_row(self._db.visitors[visitor.id]))

    async def update(self, visitor_id: str, changes: dict) -> StoreResult:
        columns = visitor_changes_to_row(changes)
        with self._db.transaction() as db:
            row = db.visitors.get(visitor_id)
            if row is None:
                return StoreResult.failure(f"Visitor not found: {visitor_id}")
            row.update(columns)
        return StoreResult.ok(Visitor.from_row(row))

    async def list_all(self) -> StoreResult:
        self._db.refresh()
        rows = sorted(self._db.visitors.values(), key=lambda r: r.get("createdAt") or "", reverse=True)
        return StoreResult.ok([Visitor.from_row(r) for r in rows])


class InMemoryAccessLogStore:
    def __init__(self, db: MemoryDatabase = None):
        self._db = db if db is not None else MemoryDatabase()

    async def create(self, entry: AccessLogEntry) -> StoreResult:
        row = entry.to_row()
        with self._db.transaction() as db:
            db.access_logs.insert(0, row)
        return StoreResult.ok(AccessLogEntry.from_row(row))

    async def list_recent(self, limit: int) -> StoreResult:
        self._db.refresh()
        rows = sorted(self._db.access_logs, key=lambda r: r.get("lastAccess") or "", reverse=True)
        return StoreResult.ok([AccessLogEntry.from_row(r) for r in rows[:limit]])


class InMemoryObjectStorage:
    """Keeps uploaded objects in a dict. Public URLs use a memory:// scheme."""

    def __init__(self, base_url: str = "memory://photos"):
        self.objects: dict[str, bytes] = {}
        self.base_url = base_url.rstrip("/")

    async def upload(self, path: str, data: bytes, content_type: str) -> StoreResult:
        self.objects[path] = data
        return StoreResult.ok(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"
