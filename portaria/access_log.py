"""
Access log writer and recent-entries reader.

A log entry is written once and never changed. After it commits, the owning
visitor's denormalized stats (last entry, visit count, last apartment) are
updated. That update is best effort: a failure is logged and the committed
entry stands, so counters are at-least-once, not exactly-once.
"""

import logging
import uuid

from portaria.errors import LogWriteFailed, LookupFailed
from portaria.models import AccessLogEntry, LogView, normalize_collaborator, utc_now_iso
from portaria.storage import resolve_photo_url
from portaria.stores import AccessLogStore, ObjectStorage, VisitorStore

logger = logging.getLogger(__name__)

UNKNOWN_VISITOR_NAME = "Unknown visitor"
UNKNOWN_NATIONAL_ID = "N/A"


class AccessLogWriter:
    def __init__(self, logs: AccessLogStore, visitors: VisitorStore, storage: ObjectStorage):
        self.logs = logs
        self.visitors = visitors
        self.storage = storage

    async def record(
        self,
        visitor_id: str,
        destination_apartment: str,
        authorized_by: str,
        collaborator: str | None = None,
        photo_ref: str = "",
    ) -> AccessLogEntry:
        """Write one entry for an already persisted visitor."""
        now = utc_now_iso()
        entry = AccessLogEntry(
            id=str(uuid.uuid4()),
            visitor_id=visitor_id,
            destination_apartment=destination_apartment.strip(),
            authorized_by=authorized_by.strip(),
            collaborator=normalize_collaborator(collaborator),
            photo_ref=photo_ref or "",
            timestamp=now,
            created_at=now,
        )
        result = await self.logs.create(entry)
        if result.error:
            logger.error("Access log write for visitor %s failed: %s", visitor_id, result.error)
            raise LogWriteFailed("Could not record the entrance", result.error)

        saved = result.data
        await self._update_visitor_stats(saved)
        return saved

    async def _update_visitor_stats(self, entry: AccessLogEntry) -> None:
        current = await self.visitors.get(entry.visitor_id)
        if current.error or current.data is None:
            logger.warning(
                "Could not load visitor %s to update stats: %s",
                entry.visitor_id, current.error or "not found",
            )
            return

        result = await self.visitors.update(entry.visitor_id, {
            "last_entry_at": entry.timestamp,
            "visit_count": current.data.visit_count + 1,
            "last_apartment_visited": entry.destination_apartment,
        })
        if result.error:
            logger.warning("Could not update stats for visitor %s: %s", entry.visitor_id, result.error)

    async def list_recent(self, limit: int = 20) -> list[LogView]:
        """Newest entries first, each joined with its visitor."""
        result = await self.logs.list_recent(limit)
        if result.error:
            raise LookupFailed("Could not load recent entries", result.error)

        views = []
        for entry in result.data:
            visitor_result = await self.visitors.get(entry.visitor_id)
            visitor = visitor_result.data
            if visitor_result.error or visitor is None:
                logger.warning("Visitor %s for log %s not found", entry.visitor_id, entry.id)
                views.append(LogView(
                    entry=entry,
                    name=UNKNOWN_VISITOR_NAME,
                    national_id=UNKNOWN_NATIONAL_ID,
                    photo_url=resolve_photo_url(entry.photo_ref, self.storage),
                ))
                continue
            views.append(LogView(
                entry=entry,
                name=visitor.name,
                national_id=visitor.national_id,
                photo_url=resolve_photo_url(entry.photo_ref or visitor.photo_ref, self.storage),
            ))
        return views
