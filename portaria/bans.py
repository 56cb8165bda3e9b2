"""
Banned-visitor list.

BanChecker reads it; BanAdministration writes it. Bans are forward-looking:
they block future entries and never touch past access log rows.

Ban state machine (per visitor): Clear <-> Banned. Both transitions are
idempotent, re-applying the current state succeeds without change.
"""

import logging
from dataclasses import dataclass

from portaria.errors import LookupFailed, ReasonRequired, VisitorNotFound
from portaria.event_recorder import EventRecorder
from portaria.models import Visitor
from portaria.stores import VisitorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BanStatus:
    banned: bool
    reason: str | None = None
    visitor_id: str | None = None
    name: str | None = None


CLEAR = BanStatus(banned=False)


class BanChecker:
    def __init__(self, visitors: VisitorStore):
        self.visitors = visitors

    async def check_banned(self, national_id: str) -> BanStatus:
        """Raises LookupFailed if the store cannot answer."""
        result = await self.visitors.find_banned(national_id)
        if result.error:
            logger.error("Ban check for %s failed: %s", national_id, result.error)
            raise LookupFailed("Could not check the banned list", result.error)
        visitor = result.data
        if visitor is None:
            return CLEAR
        return BanStatus(
            banned=True,
            reason=visitor.ban_reason or "",
            visitor_id=visitor.id,
            name=visitor.name,
        )


class BanAdministration:
    def __init__(self, visitors: VisitorStore, recorder: EventRecorder = None):
        self.visitors = visitors
        self.recorder = recorder

    async def set_banned(self, visitor_id: str, banned: bool, reason: str | None = None) -> Visitor:
        if banned:
            reason = (reason or "").strip()
            if not reason:
                raise ReasonRequired("A reason is required to ban a visitor")
            changes = {"is_banned": True, "ban_reason": reason}
        else:
            changes = {"is_banned": False, "ban_reason": None}

        current = await self.visitors.get(visitor_id)
        if current.error:
            raise LookupFailed("Could not load visitor", current.error)
        if current.data is None:
            raise VisitorNotFound(f"Visitor not found: {visitor_id}")

        result = await self.visitors.update(visitor_id, changes)
        if result.error:
            logger.error("Ban update for %s failed: %s", visitor_id, result.error)
            raise LookupFailed("Could not update ban status", result.error)

        visitor = result.data
        logger.info("Visitor %s %s", visitor_id, "banned" if banned else "unbanned")
        if self.recorder:
            self.recorder.record(
                "visitor.banned" if banned else "visitor.unbanned",
                {"visitor_id": visitor_id, "national_id": visitor.national_id, "reason": visitor.ban_reason},
            )
        return visitor

    async def ban_by_national_id(self, national_id: str, reason: str) -> Visitor:
        """Ban the visitor registered under a national ID."""
        result = await self.visitors.find_by_national_id(national_id)
        if result.error:
            raise LookupFailed("Could not look up visitor", result.error)
        if result.data is None:
            raise VisitorNotFound(f"No visitor registered with national ID {national_id}")
        return await self.set_banned(result.data.id, True, reason)

    async def list_banned(self) -> list[Visitor]:
        result = await self.visitors.list_all()
        if result.error:
            raise LookupFailed("Could not list visitors", result.error)
        return [v for v in result.data if v.is_banned]
