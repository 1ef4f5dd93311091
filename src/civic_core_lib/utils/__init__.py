"""Utility Functions"""

from civic_core_lib.utils.clock import Clock, ManualClock, SystemClock, ensure_utc
from civic_core_lib.utils.resilience import startup_retry

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "ensure_utc",
    "startup_retry",
]
