"""
Identity Directory

Per-caller DID strings. Independent of listings; no uniqueness across
users and no history.
"""

import structlog

from nexml.kernel.event_log import EventLog
from nexml.models.base import utc_now
from nexml.models.events import EventType
from nexml.models.marketplace import UserProfile
from nexml.services.catalog import Catalog
from nexml.services.errors import InvalidInputError

logger = structlog.get_logger(__name__)


class IdentityDirectory:
    def __init__(self, catalog: Catalog, events: EventLog):
        self._catalog = catalog
        self._events = events

    async def set_did(self, caller: str, did: str) -> UserProfile:
        """Set (or replace) the caller's DID."""
        if not isinstance(did, str) or not did:
            logger.info("did_rejected", caller=caller, code=InvalidInputError.code)
            raise InvalidInputError("identifier required")

        async with self._catalog.transaction():
            profile = UserProfile(identity=caller, did=did, updated_at=utc_now())
            await self._catalog.save_profile(profile)
            event = self._events.append(EventType.DID_SET, caller, identity=caller, did=did)

        logger.info("did_set", identity=caller)
        await self._events.deliver(event)
        return profile

    async def get_user_profile(self, identity: str) -> UserProfile:
        """Stored profile, or an empty one if the identity never set a DID."""
        profile = await self._catalog.get_profile(identity)
        return profile if profile is not None else UserProfile(identity=identity)
