"""Wire an IssueService from settings.

Usage:
    repository = SqlIssueRepository(session_factory)
    service = await build_issue_service(repository)
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from civic_core_lib.clients.realtime_client import RealtimeEventClient
from civic_core_lib.config import CoreSettings
from civic_core_lib.core.service import IssueService
from civic_core_lib.events import EventEmitter, NullEventEmitter
from civic_core_lib.infrastructure.cache import InMemoryCache, IssueCache, RedisCache
from civic_core_lib.infrastructure.redis_setup import get_redis_client
from civic_core_lib.repository.base import IssueRepository
from civic_core_lib.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


async def build_cache(settings: CoreSettings, clock: Clock, redis: Optional[Redis] = None) -> IssueCache:
    if settings.cache_backend == "memory":
        return InMemoryCache(clock)
    client = redis or await get_redis_client()
    return RedisCache(client)


def build_emitter(settings: CoreSettings) -> EventEmitter:
    if not settings.realtime_url:
        logger.info("CIVIC_REALTIME_URL not set; issue events will not be published")
        return NullEventEmitter()
    return RealtimeEventClient(base_url=settings.realtime_url, timeout=settings.realtime_timeout)


async def build_issue_service(
    repository: IssueRepository,
    settings: Optional[CoreSettings] = None,
    clock: Optional[Clock] = None,
    redis: Optional[Redis] = None,
) -> IssueService:
    """Assemble the service with the cache backend and emitter from ``settings``.

    Args:
        repository: Persistence implementation
        settings: Defaults to ``CoreSettings.from_env()``
        clock: Defaults to the system clock
        redis: Pre-built Redis client; otherwise one is created from REDIS_* env
    """
    settings = settings or CoreSettings.from_env()
    clock = clock or SystemClock()
    cache = await build_cache(settings, clock, redis=redis)
    return IssueService(
        repository,
        cache=cache,
        emitter=build_emitter(settings),
        clock=clock,
        settings=settings,
    )
