"""Tests for service wiring and Redis bootstrap helpers"""
from unittest.mock import AsyncMock

import pytest

from civic_core_lib.clients.realtime_client import RealtimeEventClient
from civic_core_lib.config import CoreSettings
from civic_core_lib.events import NullEventEmitter
from civic_core_lib.factory import build_issue_service
from civic_core_lib.infrastructure import redis_setup
from civic_core_lib.infrastructure.cache import InMemoryCache, RedisCache
from civic_core_lib.infrastructure.redis_setup import get_redis_client, parse_sentinel_hosts


class TestBuildIssueService:
    @pytest.mark.asyncio
    async def test_memory_backend_without_realtime(self, repository, clock):
        service = await build_issue_service(
            repository, settings=CoreSettings(cache_backend="memory"), clock=clock
        )
        assert isinstance(service.cache.cache, InMemoryCache)
        assert isinstance(service.emitter, NullEventEmitter)
        assert service.clock is clock

    @pytest.mark.asyncio
    async def test_redis_backend_with_realtime(self, repository, clock):
        redis = AsyncMock()
        settings = CoreSettings(
            cache_backend="redis",
            cache_key_prefix="civic:",
            realtime_url="http://civic-realtime:4000",
            realtime_timeout=2.0,
        )
        service = await build_issue_service(repository, settings=settings, clock=clock, redis=redis)

        assert isinstance(service.cache.cache, RedisCache)
        assert service.cache.cache.client is redis
        assert service.cache.namespaces == ("civic:issues:", "civic:analytics:")
        assert isinstance(service.emitter, RealtimeEventClient)
        assert service.emitter.timeout == 2.0


class TestRedisSetup:
    def test_parse_sentinel_hosts(self):
        assert parse_sentinel_hosts("s1:26380, s2 ,") == [("s1", 26380), ("s2", 26379)]

    @pytest.mark.asyncio
    async def test_sentinel_mode_requires_hosts(self):
        with pytest.raises(ValueError):
            await get_redis_client(mode="sentinel", sentinel_hosts="", verify=False)

    @pytest.mark.asyncio
    async def test_standalone_client_from_url(self, monkeypatch):
        monkeypatch.delenv("REDIS_MODE", raising=False)
        client = await get_redis_client(url="redis://cache.internal:6380/2", verify=False)
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2

    @pytest.mark.asyncio
    async def test_verification_pings(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        pings = AsyncMock()
        monkeypatch.setattr(redis_setup, "verify_redis_connection", pings)
        client = await get_redis_client(mode="standalone", host="localhost", port=6379)
        pings.assert_awaited_once_with(client)
