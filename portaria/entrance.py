"""
Entrance registration workflow.

One registration runs these steps in order, each awaiting the previous one:

1. Ban check (authoritative; the form's earlier precheck is advisory only)
2. Identity resolution by national ID
3. Photo storage (new visitor, or a new photo explicitly supplied)
4. Visitor upsert
5. Access log write (+ best-effort visitor stats update)

Any failure in steps 1-5 aborts the registration with a RegistrationError;
nothing after the failing step runs. A banned visitor is rejected before any
write, so no visitor, photo or log is created for them.

Registrations for the same national ID are serialized within the process.
Across processes the store's unique constraint decides, see VisitorUpsert.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from portaria.access_log import AccessLogWriter
from portaria.bans import CLEAR, BanChecker, BanStatus
from portaria.errors import BannedVisitor, InvalidRequest, PhotoRequired, VisitorNotFound
from portaria.event_recorder import EventRecorder
from portaria.identity import IdentityResolver, is_valid_national_id, normalize_national_id
from portaria.models import EntranceRecord
from portaria.photos import PhotoPipeline, RawImage, StoredPhoto
from portaria.storage import resolve_photo_url
from portaria.stores import AccessLogStore, ObjectStorage, VisitorStore
from portaria.visitors import VisitorUpsert

logger = logging.getLogger(__name__)


@dataclass
class EntranceRequest:
    national_id: str
    name: str
    apartment: str
    authorized_by: str
    collaborator: str | None = None
    photo: RawImage | None = None


def _require(value: str | None, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidRequest(f"{label} is required")
    return value


class EntranceWorkflow:
    def __init__(
        self,
        visitors: VisitorStore,
        logs: AccessLogStore,
        storage: ObjectStorage,
        recorder: EventRecorder = None,
    ):
        self.storage = storage
        self.recorder = recorder
        self.resolver = IdentityResolver(visitors)
        self.ban_checker = BanChecker(visitors)
        self.photos = PhotoPipeline(storage)
        self.upsert = VisitorUpsert(visitors)
        self.writer = AccessLogWriter(logs, visitors, storage)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _serialized(self, national_id: str):
        lock = self._locks.setdefault(national_id, asyncio.Lock())
        self._lock_users[national_id] = self._lock_users.get(national_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[national_id] -= 1
            if not self._lock_users[national_id]:
                del self._lock_users[national_id]
                del self._locks[national_id]

    async def precheck(self, national_id: str) -> BanStatus:
        """Early ban feedback while the form is being filled in.

        Advisory only: register() checks again before writing anything.
        Incomplete IDs are reported as clear.
        """
        national_id = normalize_national_id(national_id)
        if not is_valid_national_id(national_id):
            return CLEAR
        return await self.ban_checker.check_banned(national_id)

    async def _ensure_not_banned(self, national_id: str) -> None:
        status = await self.ban_checker.check_banned(national_id)
        if status.banned:
            logger.warning("Entrance denied for banned national ID %s: %s", national_id, status.reason)
            self._record("entrance.denied", {
                "national_id": national_id,
                "visitor_id": status.visitor_id,
                "reason": status.reason,
            })
            raise BannedVisitor(status.reason, status.name)

    async def register(self, request: EntranceRequest) -> EntranceRecord:
        national_id = normalize_national_id(request.national_id)
        if not is_valid_national_id(national_id):
            raise InvalidRequest(f"Invalid national ID: {request.national_id!r}")
        apartment = _require(request.apartment, "Apartment")
        authorized_by = _require(request.authorized_by, "Authorizer")

        async with self._serialized(national_id):
            await self._ensure_not_banned(national_id)

            existing = (await self.resolver.resolve(national_id)).unwrap()
            if existing is None:
                _require(request.name, "Visitor name")

            stored: StoredPhoto | None = None
            if request.photo is not None and request.photo.data:
                stored = await self.photos.store(request.photo)
            elif existing is None:
                raise PhotoRequired("A photo is required to register a new visitor")

            new_ref = stored.persisted_ref if stored else None
            visitor, created = await self.upsert.upsert(national_id, request.name or "", new_ref, existing)

            entry_ref = new_ref or visitor.photo_ref
            entry = await self.writer.record(
                visitor.id, apartment, authorized_by, request.collaborator, entry_ref
            )

        logger.info("Registered entrance of visitor %s to apartment %s", visitor.id, apartment)
        self._record("entrance.registered", {
            "entry_id": entry.id,
            "visitor_id": visitor.id,
            "national_id": national_id,
            "apartment": apartment,
            "new_visitor": created,
            "photo_degraded": bool(stored and stored.degraded),
        })
        return EntranceRecord(
            entry_id=entry.id,
            visitor_id=visitor.id,
            name=visitor.name,
            national_id=visitor.national_id,
            apartment=entry.destination_apartment,
            authorized_by=entry.authorized_by,
            collaborator=entry.collaborator,
            entry_time=entry.timestamp,
            photo_url=stored.url if stored else resolve_photo_url(entry_ref, self.storage),
            photo_degraded=bool(stored and stored.degraded),
            new_visitor=created,
        )

    async def quick_entry(
        self,
        visitor_id: str,
        apartment: str,
        authorized_by: str,
        collaborator: str | None = None,
    ) -> EntranceRecord:
        """Register a returning visitor picked from the list, reusing their photo."""
        apartment = _require(apartment, "Apartment")
        authorized_by = _require(authorized_by, "Authorizer")

        visitor = (await self.resolver.get(visitor_id)).unwrap()
        if visitor is None:
            raise VisitorNotFound(f"Visitor not found: {visitor_id}")

        async with self._serialized(visitor.national_id):
            await self._ensure_not_banned(visitor.national_id)
            entry = await self.writer.record(
                visitor.id, apartment, authorized_by, collaborator, visitor.photo_ref
            )

        self._record("entrance.registered", {
            "entry_id": entry.id,
            "visitor_id": visitor.id,
            "national_id": visitor.national_id,
            "apartment": apartment,
            "new_visitor": False,
            "photo_degraded": False,
        })
        return EntranceRecord(
            entry_id=entry.id,
            visitor_id=visitor.id,
            name=visitor.name,
            national_id=visitor.national_id,
            apartment=entry.destination_apartment,
            authorized_by=entry.authorized_by,
            collaborator=entry.collaborator,
            entry_time=entry.timestamp,
            photo_url=resolve_photo_url(visitor.photo_ref, self.storage),
        )

    def _record(self, event_type: str, payload: dict) -> None:
        if self.recorder:
            self.recorder.record(event_type, payload)
