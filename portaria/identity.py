"""
Identity resolution by national ID (CPF).

The resolver is read-only. A store failure is reported as Err(LookupFailed),
never as "not found": treating an outage as a miss would let the workflow
create a duplicate visitor.
"""

import logging
import re

from portaria import config
from portaria.errors import LookupFailed
from portaria.models import Visitor
from portaria.result import Err, Ok, Result
from portaria.stores import VisitorStore

logger = logging.getLogger(__name__)

_NATIONAL_ID_SEPARATORS = re.compile(r"[\s.\-/]")


def normalize_national_id(raw: str | None) -> str:
    """Strip formatting: "123.456.789-00" -> "12345678900"."""
    return _NATIONAL_ID_SEPARATORS.sub("", raw or "")


def is_valid_national_id(national_id: str | None) -> bool:
    return len(normalize_national_id(national_id)) >= config.MIN_NATIONAL_ID_LENGTH


class IdentityResolver:
    def __init__(self, visitors: VisitorStore):
        self.visitors = visitors

    async def resolve(self, national_id: str) -> Result[Visitor | None]:
        """Ok(visitor), Ok(None) when unknown, or Err(LookupFailed)."""
        result = await self.visitors.find_by_national_id(national_id)
        if result.error:
            logger.error("Visitor lookup for %s failed: %s", national_id, result.error)
            return Err(LookupFailed("Could not look up visitor", result.error))
        return Ok(result.data)

    async def get(self, visitor_id: str) -> Result[Visitor | None]:
        result = await self.visitors.get(visitor_id)
        if result.error:
            logger.error("Visitor lookup for id %s failed: %s", visitor_id, result.error)
            return Err(LookupFailed("Could not look up visitor", result.error))
        return Ok(result.data)
