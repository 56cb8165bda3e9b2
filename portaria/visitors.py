"""
Visitor upsert: create on first visit, reuse afterwards.

The caller passes the resolver's verdict (`existing`), so lookup and create
are separate steps. A unique-constraint conflict on create means another
registration won the race; the upsert re-resolves once and reuses that
visitor instead of failing.
"""

import logging
import uuid

from portaria.errors import LookupFailed, PhotoRequired, VisitorCreationFailed
from portaria.identity import IdentityResolver
from portaria.models import Visitor, utc_now_iso
from portaria.stores import VisitorStore

logger = logging.getLogger(__name__)


class VisitorUpsert:
    def __init__(self, visitors: VisitorStore):
        self.visitors = visitors
        self.resolver = IdentityResolver(visitors)

    async def upsert(
        self,
        national_id: str,
        name: str,
        photo_ref: str | None,
        existing: Visitor | None,
    ) -> tuple[Visitor, bool]:
        """Return (visitor, created)."""
        if existing is not None:
            return await self._refresh_photo(existing, photo_ref), False
        return await self._create(national_id, name, photo_ref)

    async def _refresh_photo(self, visitor: Visitor, photo_ref: str | None) -> Visitor:
        if not photo_ref or photo_ref == visitor.photo_ref:
            return visitor

        result = await self.visitors.update(visitor.id, {"photo_ref": photo_ref})
        if result.error:
            # Non-fatal: the entry is still recorded with the new photo
            logger.warning("Could not refresh photo for visitor %s: %s", visitor.id, result.error)
            return visitor
        return result.data

    async def _create(self, national_id: str, name: str, photo_ref: str | None) -> tuple[Visitor, bool]:
        if not photo_ref:
            raise PhotoRequired("A photo is required to register a new visitor")

        visitor = Visitor(
            id=str(uuid.uuid4()),
            name=name.strip(),
            national_id=national_id,
            photo_ref=photo_ref,
            visit_count=0,
            created_at=utc_now_iso(),
        )
        result = await self.visitors.create(visitor)
        if not result.error:
            logger.info("Created visitor %s for national ID %s", visitor.id, national_id)
            return result.data, True

        if result.conflict:
            logger.warning("Visitor for %s created concurrently, re-resolving", national_id)
            try:
                racer = (await self.resolver.resolve(national_id)).unwrap()
            except LookupFailed as e:
                raise VisitorCreationFailed("Could not create visitor", e.detail) from e
            if racer is not None:
                return await self._refresh_photo(racer, photo_ref), False

        logger.error("Visitor creation for %s failed: %s", national_id, result.error)
        raise VisitorCreationFailed("Could not create visitor", result.error)
