"""
Event identifier resolution.

Any of the identifiers an event is known by resolves to the canonical
Event record, first match wins:

1. canonical event_id (evt_...)
2. record id (rec...)
3. purely numeric: SimplyBook booking id -> linked event, then booking access code
4. legacy_booking_id equality

A miss is reported as None, never raised. Store failures still propagate.
Successful resolutions (identifier -> record id) can be cached; the event
itself is always re-read so callers never see stale approval fields.
"""

import logging
from typing import Optional

from ...config import RESOLVER_CACHE_TTL
from ...errors import NotFoundError
from ...models import Event
from ...record_store import RecordStore
from ...utils.identifiers import is_numeric_id, is_record_id
from .repository import EventRepository

logger = logging.getLogger(__name__)


class EventResolver:
    def __init__(self, store: RecordStore, cache=None, ttl: int = RESOLVER_CACHE_TTL):
        self.store = store
        self.cache = cache
        self.ttl = ttl
        self.repo = EventRepository()

    @staticmethod
    def _cache_key(identifier: str) -> str:
        return f"event_resolve:{identifier}"

    def resolve(self, identifier: Optional[str]) -> Optional[Event]:
        identifier = (identifier or "").strip()
        if not identifier:
            return None

        if self.cache is not None:
            record_id = self.cache.get(self._cache_key(identifier))
            if record_id:
                event = self.repo.get_by_record_id(self.store, record_id)
                if event:
                    return event
                self.cache.delete(self._cache_key(identifier))

        event = self._resolve_uncached(identifier)
        if event is None:
            logger.info(f"🔍 No event found for identifier {identifier!r}")
            return None

        if self.cache is not None:
            self.cache.set(self._cache_key(identifier), event.record_id, self.ttl)
        return event

    def _resolve_uncached(self, identifier: str) -> Optional[Event]:
        event = self.repo.get_by_event_id(self.store, identifier)
        if event:
            return event

        if is_record_id(identifier):
            event = self.repo.get_by_record_id(self.store, identifier)
            if event:
                return event

        if is_numeric_id(identifier):
            booking = self.repo.get_booking_by_simplybook_id(self.store, identifier)
            if booking:
                event = self.repo.get_event_for_booking(self.store, booking)
                if event:
                    logger.debug(f"🔍 Resolved SimplyBook id {identifier} to {event.event_id}")
                    return event
            booking = self.repo.get_booking_by_access_code(self.store, identifier)
            if booking:
                event = self.repo.get_event_for_booking(self.store, booking)
                if event:
                    logger.debug(f"🔍 Resolved access code {identifier} to {event.event_id}")
                    return event

        return self.repo.get_by_legacy_booking_id(self.store, identifier)

    def resolve_or_404(self, identifier: Optional[str]) -> Event:
        event = self.resolve(identifier)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    def invalidate(self, identifier: str) -> None:
        if self.cache is not None:
            self.cache.delete(self._cache_key(identifier))
