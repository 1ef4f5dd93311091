"""Redis connection factory for the issue cache.

Supports:
- REDIS_URL (single connection string, e.g. redis://localhost:6379/0)
- Standalone Redis from host/port settings
- Redis Sentinel for HA deployments

Environment Variables:
    REDIS_URL: Full connection URL; takes precedence in standalone mode
    REDIS_MODE: "standalone" (default) or "sentinel"
    REDIS_HOST / REDIS_PORT / REDIS_DB / REDIS_PASSWORD
    REDIS_SENTINEL_HOSTS: Comma-separated "host:port" pairs
    REDIS_MASTER_SET: Sentinel master name (default: "mymaster")
"""

import logging
import os
from typing import List, Optional, Tuple

from redis.asyncio import Redis
from redis.asyncio.sentinel import Sentinel

from civic_core_lib.utils.resilience import startup_retry

logger = logging.getLogger(__name__)

DEFAULT_SENTINEL_PORT = 26379


def parse_sentinel_hosts(hosts_str: str) -> List[Tuple[str, int]]:
    """Parse "host1:26379,host2" into [("host1", 26379), ("host2", 26379)]."""
    sentinels = []
    for entry in hosts_str.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            host, port_str = entry.rsplit(":", 1)
            sentinels.append((host, int(port_str)))
        else:
            sentinels.append((entry, DEFAULT_SENTINEL_PORT))
    return sentinels


@startup_retry
async def verify_redis_connection(client: Redis) -> None:
    await client.ping()
    logger.info("Redis connection verified")


async def get_redis_client(
    mode: Optional[str] = None,
    url: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    password: Optional[str] = None,
    sentinel_hosts: Optional[str] = None,
    master_set: Optional[str] = None,
    verify: bool = True,
) -> Redis:
    """Create an async Redis client and (optionally) verify it answers PING.

    Explicit arguments win over environment variables.

    Raises:
        ValueError: If sentinel mode is selected without sentinel hosts
        redis.exceptions.ConnectionError: If PING keeps failing after retries
    """
    redis_mode = (mode or os.getenv("REDIS_MODE", "standalone")).lower()
    db_index = db if db is not None else int(os.getenv("REDIS_DB", "0"))
    password = password or os.getenv("REDIS_PASSWORD") or None

    if redis_mode == "sentinel":
        hosts_str = sentinel_hosts or os.getenv("REDIS_SENTINEL_HOSTS", "")
        sentinels = parse_sentinel_hosts(hosts_str)
        if not sentinels:
            raise ValueError(f"No valid sentinel hosts found in: {hosts_str!r}")
        master_name = master_set or os.getenv("REDIS_MASTER_SET", "mymaster")

        logger.info(f"Connecting to Redis Sentinel: master={master_name}, sentinels={sentinels}")
        sentinel = Sentinel(
            sentinels,
            sentinel_kwargs={"password": password} if password else {},
            socket_keepalive=True,
        )
        client = sentinel.master_for(
            master_name,
            db=db_index,
            password=password,
            decode_responses=True,
        )
    else:
        redis_url = url or os.getenv("REDIS_URL")
        if redis_url:
            logger.info("Connecting to Redis from REDIS_URL")
            client = Redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=5)
        else:
            redis_host = host or os.getenv("REDIS_HOST", "localhost")
            redis_port = port if port is not None else int(os.getenv("REDIS_PORT", "6379"))
            logger.info(f"Connecting to standalone Redis: {redis_host}:{redis_port}/{db_index}")
            client = Redis(
                host=redis_host,
                port=redis_port,
                db=db_index,
                password=password,
                decode_responses=True,
                socket_keepalive=True,
                socket_connect_timeout=5,
            )

    if verify:
        await verify_redis_connection(client)
    return client
