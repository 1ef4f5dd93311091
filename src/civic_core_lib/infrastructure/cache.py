"""
Read-view cache and its invalidation coordinator.

Policy: coarse-grained. Any accepted issue mutation drops the whole
``issues:`` namespace (and the ``analytics:`` namespace) rather than tracking
individual filter combinations. Cached entries also expire after a short TTL.

Every cache call is best-effort: the coordinator logs failures and carries on,
so a broken cache never fails a read or a mutation.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

from redis.asyncio import Redis

from civic_core_lib.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

ISSUES_NAMESPACE = "issues:"
ANALYTICS_NAMESPACE = "analytics:"
DEFAULT_TTL_SECONDS = 300


class IssueCache(ABC):
    """Cache collaborator contract."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL_SECONDS) -> None:
        pass

    @abstractmethod
    async def invalidate_namespace(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``.

        Returns:
            Number of keys removed
        """
        pass


class InMemoryCache(IssueCache):
    """Process-local cache; expiry follows the injected clock."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._entries: Dict[str, Tuple[str, datetime]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self.clock.now() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL_SECONDS) -> None:
        expires_at = self.clock.now() + timedelta(seconds=ttl)
        self._entries[key] = (json.dumps(value, default=str), expires_at)

    async def invalidate_namespace(self, prefix: str) -> int:
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def keys(self) -> Iterable[str]:
        return list(self._entries)


class RedisCache(IssueCache):
    """Redis-backed cache storing JSON strings with ``SETEX``.

    Namespace invalidation walks the keyspace with ``SCAN`` (never ``KEYS``)
    and deletes in batches.
    """

    def __init__(self, client: Redis, scan_batch_size: int = 500):
        self.client = client
        self.scan_batch_size = scan_batch_size

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL_SECONDS) -> None:
        await self.client.setex(key, ttl, json.dumps(value, default=str))

    async def invalidate_namespace(self, prefix: str) -> int:
        removed = 0
        batch = []
        async for key in self.client.scan_iter(match=f"{prefix}*", count=self.scan_batch_size):
            batch.append(key)
            if len(batch) >= self.scan_batch_size:
                removed += await self.client.delete(*batch)
                batch = []
        if batch:
            removed += await self.client.delete(*batch)
        return removed


def build_cache_key(namespace: str, kind: str, params: Dict[str, Any]) -> str:
    """Deterministic key: ``<namespace><kind>:<sha256 of params>``"""
    canonical = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()
    return f"{namespace}{kind}:{digest}"


class CacheInvalidationCoordinator:
    """Best-effort front for the cache used by the Issue Service.

    Reads and writes return quietly on failure; ``invalidate`` drops every
    namespace that a mutation could have made stale.

    ``generation`` counts invalidations in this process. A reader captures it
    before querying the repository and passes it to ``write``; if a mutation
    invalidated in the meantime, the now stale view is not stored.
    """

    def __init__(
        self,
        cache: IssueCache,
        namespaces: Iterable[str] = (ISSUES_NAMESPACE, ANALYTICS_NAMESPACE),
        key_prefix: str = "",
    ):
        self.cache = cache
        self.key_prefix = key_prefix
        self.namespaces = tuple(f"{key_prefix}{ns}" for ns in namespaces)
        self.generation = 0

    def key(self, namespace: str, kind: str, params: Dict[str, Any]) -> str:
        return build_cache_key(f"{self.key_prefix}{namespace}", kind, params)

    async def read(self, key: str) -> Optional[Any]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def write(
        self,
        key: str,
        value: Any,
        ttl: int = DEFAULT_TTL_SECONDS,
        generation: Optional[int] = None,
    ) -> bool:
        """Store ``value`` unless the cache was invalidated after ``generation``.

        Returns:
            True if the value was handed to the cache
        """
        if generation is not None and generation != self.generation:
            logger.debug(f"Skipping cache write for {key}: invalidated while it was computed")
            return False
        try:
            await self.cache.set(key, value, ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    async def invalidate(self, reason: str, issue_id: Optional[str] = None) -> int:
        """Drop all read views after a mutation.

        Returns:
            Number of keys removed across namespaces that were reachable
        """
        self.generation += 1
        removed = 0
        for namespace in self.namespaces:
            try:
                removed += await self.cache.invalidate_namespace(namespace)
            except Exception as e:
                logger.warning(
                    f"Cache invalidation of {namespace} failed after {reason} "
                    f"(issue={issue_id}): {e}"
                )
        logger.debug(f"Invalidated {removed} cached views after {reason} (issue={issue_id})")
        return removed
