"""SLA calculation.

The SLA string describes *current* urgency, not historical compliance:
a resolved or closed issue always reads "Closed", even if it was resolved
after its deadline. Historical compliance is computed separately by
``is_sla_breached`` for analytics.
"""

import math
from datetime import datetime, timedelta
from typing import Optional, Union

from civic_core_lib.models.issue import IssuePriority, IssueStatus
from civic_core_lib.utils.clock import ensure_utc

SLA_ALLOWANCE_HOURS = {
    IssuePriority.CRITICAL: 4,
    IssuePriority.HIGH: 24,
    IssuePriority.MEDIUM: 72,
    IssuePriority.LOW: 168,
}

# Fallback for unrecognised priorities
DEFAULT_ALLOWANCE_HOURS = SLA_ALLOWANCE_HOURS[IssuePriority.MEDIUM]

SLA_CLOSED = "Closed"
SLA_OVERDUE = "Overdue"

# Remaining time at or below this many hours is always shown in hours
HOURS_DISPLAY_THRESHOLD = 2


def sla_allowance_hours(priority: Union[IssuePriority, str, None]) -> int:
    """Hours allowed before an issue of ``priority`` becomes overdue."""
    try:
        return SLA_ALLOWANCE_HOURS[IssuePriority(priority)]
    except ValueError:
        return DEFAULT_ALLOWANCE_HOURS


def elapsed_hours(start: datetime, end: datetime) -> int:
    """Whole hours between two instants, floored and never negative."""
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, math.floor(seconds / 3600))


def calculate_sla(
    created_at: datetime,
    status: Union[IssueStatus, str],
    priority: Union[IssuePriority, str, None],
    now: datetime,
) -> str:
    """Render the SLA status of an issue.

    Args:
        created_at: When the issue was reported
        status: Current issue status
        priority: Issue priority (unrecognised values use the MEDIUM allowance)
        now: Current time, supplied by the caller's clock

    Returns:
        "Closed", "Overdue", "Nh left" or "Nd left"

    Example:
        >>> t0 = datetime(2025, 9, 9, tzinfo=timezone.utc)
        >>> calculate_sla(t0, "PENDING", "CRITICAL", t0)
        '4h left'
        >>> calculate_sla(t0, "PENDING", "CRITICAL", t0 + timedelta(hours=5))
        'Overdue'
    """
    if str(getattr(status, "value", status)) in (IssueStatus.RESOLVED.value, IssueStatus.CLOSED.value):
        return SLA_CLOSED

    allowance = sla_allowance_hours(priority)
    elapsed = elapsed_hours(created_at, now)
    if elapsed > allowance:
        return SLA_OVERDUE

    remaining = allowance - elapsed
    days = remaining // 24
    if remaining <= HOURS_DISPLAY_THRESHOLD or days == 0:
        return f"{remaining}h left"
    return f"{days}d left"


def sla_deadline(created_at: datetime, priority: Union[IssuePriority, str, None]) -> datetime:
    return ensure_utc(created_at) + timedelta(hours=sla_allowance_hours(priority))


def is_sla_breached(
    created_at: datetime,
    priority: Union[IssuePriority, str, None],
    now: datetime,
    resolved_at: Optional[datetime] = None,
) -> bool:
    """Historical compliance check.

    Resolved issues are judged at their resolution time, open ones at ``now``.
    """
    end = resolved_at if resolved_at is not None else now
    return elapsed_hours(created_at, end) > sla_allowance_hours(priority)
