"""Cache infrastructure: cache backends, invalidation coordinator, Redis wiring."""

from civic_core_lib.infrastructure.cache import (
    ANALYTICS_NAMESPACE,
    ISSUES_NAMESPACE,
    CacheInvalidationCoordinator,
    InMemoryCache,
    IssueCache,
    RedisCache,
)
from civic_core_lib.infrastructure.redis_setup import get_redis_client

__all__ = [
    "ANALYTICS_NAMESPACE",
    "ISSUES_NAMESPACE",
    "CacheInvalidationCoordinator",
    "InMemoryCache",
    "IssueCache",
    "RedisCache",
    "get_redis_client",
]
