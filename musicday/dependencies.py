"""Shared FastAPI dependencies for collaborators used across domains"""

import asyncio
from typing import Optional

from fastapi import Depends

from .cache import Cache
from .domain.events.resolver import EventResolver
from .record_store import RecordStore, get_record_store
from .services.activity_service import ActivityService

_resolver_cache: Optional[Cache] = None
_activity_service: Optional[ActivityService] = None


def get_resolver_cache() -> Cache:
    global _resolver_cache
    if _resolver_cache is None:
        _resolver_cache = Cache(prefix="musicday:resolver")
    return _resolver_cache


def get_resolver(
    store: RecordStore = Depends(get_record_store),
    cache: Cache = Depends(get_resolver_cache),
) -> EventResolver:
    return EventResolver(store, cache=cache)


async def get_activity_service(store: RecordStore = Depends(get_record_store)) -> ActivityService:
    """Resolved on the event loop so sync handlers can hand entries back to it"""
    global _activity_service
    if _activity_service is None:
        _activity_service = ActivityService(store)
    _activity_service.bind_loop(asyncio.get_running_loop())
    return _activity_service
