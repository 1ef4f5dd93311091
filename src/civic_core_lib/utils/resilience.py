"""Retry policy for collaborator connections made at service startup.

Only connection bootstrap is retried. Request-path calls to the repository,
cache or event gateway are never retried inside the core; callers decide.
"""

import logging

from tenacity import (
    RetryCallState,
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def _log_final_failure(retry_state: RetryCallState) -> None:
    name = getattr(retry_state.fn, "__name__", "startup call")
    logger.error(
        f"[Startup] {name} failed after {retry_state.attempt_number} attempts "
        f"({retry_state.seconds_since_start:.1f}s)"
    )


# 2s, 4s, 8s, 16s between attempts; gives up after 5 tries and re-raises
startup_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=2, max=16),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    after=lambda state: _log_final_failure(state) if state.attempt_number >= 5 else None,
    reraise=True,
)
