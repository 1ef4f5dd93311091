"""Environment-driven settings for the issue core.

Environment Variables:
    CIVIC_LIST_CACHE_TTL: Seconds list views stay cached (default: 300)
    CIVIC_ANALYTICS_CACHE_TTL: Seconds dashboard summaries stay cached (default: 300)
    CIVIC_TEAM_ANALYTICS_CACHE_TTL: Seconds team performance stays cached (default: 900)
    CIVIC_DEFAULT_PAGE_SIZE: Page size when the caller sends none (default: 10)
    CIVIC_MAX_PAGE_SIZE: Largest page a caller may request (default: 100)
    CIVIC_CACHE_BACKEND: "redis" (default) or "memory"
    CIVIC_CACHE_KEY_PREFIX: Prefix for every cache key (default: "")
    CIVIC_REALTIME_URL: Real-time gateway base URL; unset disables publishing
    CIVIC_REALTIME_TIMEOUT: Gateway request timeout in seconds (default: 5.0)

Invalid values are logged and replaced by the default.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

CACHE_BACKENDS = ("redis", "memory")


def _env_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid integer in {key}: {raw!r}, using {default}")
        return default
    if value < minimum:
        logger.warning(f"{key}={value} is below {minimum}, using {default}")
        return default
    return value


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid number in {key}: {raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"{key} must be positive, using {default}")
        return default
    return value


@dataclass(frozen=True)
class CoreSettings:
    list_cache_ttl: int = 300
    analytics_cache_ttl: int = 300
    team_analytics_cache_ttl: int = 900
    default_page_size: int = 10
    max_page_size: int = 100
    cache_backend: str = "redis"
    cache_key_prefix: str = ""
    realtime_url: Optional[str] = None
    realtime_timeout: float = 5.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "CoreSettings":
        """Build settings from ``env`` (defaults to ``os.environ``)."""
        env = os.environ if env is None else env

        max_page_size = _env_int(env, "CIVIC_MAX_PAGE_SIZE", 100, minimum=1)
        default_page_size = _env_int(env, "CIVIC_DEFAULT_PAGE_SIZE", 10, minimum=1)
        if default_page_size > max_page_size:
            logger.warning(
                f"CIVIC_DEFAULT_PAGE_SIZE={default_page_size} exceeds "
                f"CIVIC_MAX_PAGE_SIZE={max_page_size}, clamping"
            )
            default_page_size = max_page_size

        backend = env.get("CIVIC_CACHE_BACKEND", "redis").strip().lower()
        if backend not in CACHE_BACKENDS:
            logger.warning(f"Invalid CIVIC_CACHE_BACKEND '{backend}', defaulting to 'redis'")
            backend = "redis"

        realtime_url = env.get("CIVIC_REALTIME_URL") or None

        settings = cls(
            list_cache_ttl=_env_int(env, "CIVIC_LIST_CACHE_TTL", 300, minimum=1),
            analytics_cache_ttl=_env_int(env, "CIVIC_ANALYTICS_CACHE_TTL", 300, minimum=1),
            team_analytics_cache_ttl=_env_int(env, "CIVIC_TEAM_ANALYTICS_CACHE_TTL", 900, minimum=1),
            default_page_size=default_page_size,
            max_page_size=max_page_size,
            cache_backend=backend,
            cache_key_prefix=env.get("CIVIC_CACHE_KEY_PREFIX", ""),
            realtime_url=realtime_url,
            realtime_timeout=_env_float(env, "CIVIC_REALTIME_TIMEOUT", 5.0),
        )
        logger.info(
            f"CoreSettings loaded: cache={settings.cache_backend}, "
            f"list_ttl={settings.list_cache_ttl}s, realtime={'on' if realtime_url else 'off'}"
        )
        return settings
