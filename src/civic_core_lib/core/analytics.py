"""Role-scoped dashboard analytics.

Unlike the live SLA string, ``sla_compliance`` here is a historical measure:
resolved issues are judged at the moment their RESOLVED step completed, so an
issue resolved after its deadline counts as a breach.

Team performance reports per team member workload and resolution speed, with
resolution time measured up to the RESOLVED record rather than the last edit.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from civic_core_lib.core import policy
from civic_core_lib.core.policy import IssueScope
from civic_core_lib.core.sla import is_sla_breached
from civic_core_lib.errors import AuthorizationError
from civic_core_lib.infrastructure.cache import ANALYTICS_NAMESPACE, CacheInvalidationCoordinator
from civic_core_lib.models.issue import Issue, IssueFilters, IssuePriority, IssueStatus, LifecycleStep
from civic_core_lib.models.user import User, UserRole
from civic_core_lib.repository.base import IssueRepository
from civic_core_lib.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class DepartmentBreakdown(BaseModel):
    department: str
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    resolved: int = 0
    resolution_rate: int = Field(default=0, ge=0, le=100)


class DashboardSummary(BaseModel):
    total_issues: int = 0
    pending_issues: int = 0
    in_progress_issues: int = 0
    resolved_issues: int = 0
    closed_issues: int = 0
    critical_issues: int = 0
    overdue_issues: int = Field(default=0, description="Open issues past their SLA allowance")
    resolution_rate: int = Field(default=0, ge=0, le=100)
    sla_compliance: int = Field(default=100, ge=0, le=100)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_department: List[DepartmentBreakdown] = Field(default_factory=list)


class TeamMemberPerformance(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    department: Optional[str] = None
    total_assigned: int = 0
    resolved: int = 0
    pending: int = 0
    in_progress: int = 0
    resolution_rate: int = Field(default=0, ge=0, le=100)
    avg_resolution_days: float = Field(
        default=0.0, ge=0, description="Mean days from report to RESOLVED, one decimal"
    )


def _percent(part: int, whole: int, empty: int) -> int:
    if whole == 0:
        return empty
    return round(part / whole * 100)


def summarize(issues: List[Issue], now: datetime) -> DashboardSummary:
    """Pure aggregation over an already scoped list of issues."""
    summary = DashboardSummary(by_priority={p.value: 0 for p in IssuePriority})
    departments: Dict[str, DepartmentBreakdown] = {}
    breached = 0

    for issue in issues:
        summary.total_issues += 1
        summary.by_priority[issue.priority.value] += 1
        dept = departments.setdefault(issue.department, DepartmentBreakdown(department=issue.department))
        dept.total += 1

        if issue.status == IssueStatus.PENDING:
            summary.pending_issues += 1
            dept.pending += 1
        elif issue.status == IssueStatus.IN_PROGRESS:
            summary.in_progress_issues += 1
            dept.in_progress += 1
        elif issue.status == IssueStatus.RESOLVED:
            summary.resolved_issues += 1
            dept.resolved += 1
        else:
            summary.closed_issues += 1
            dept.resolved += 1

        if issue.priority == IssuePriority.CRITICAL:
            summary.critical_issues += 1

        resolved_at = issue.completed_at(LifecycleStep.RESOLVED)
        if is_sla_breached(issue.created_at, issue.priority, now, resolved_at=resolved_at):
            breached += 1
            if not issue.status.is_closed:
                summary.overdue_issues += 1

    finished = summary.resolved_issues + summary.closed_issues
    summary.resolution_rate = _percent(finished, summary.total_issues, empty=0)
    summary.sla_compliance = _percent(summary.total_issues - breached, summary.total_issues, empty=100)

    for dept in departments.values():
        dept.resolution_rate = _percent(dept.resolved, dept.total, empty=0)
    summary.by_department = sorted(departments.values(), key=lambda d: d.department)
    return summary


def member_performance(member: User, issues: Iterable[Issue]) -> TeamMemberPerformance:
    """Pure aggregation over the issues currently assigned to ``member``.

    RESOLVED and CLOSED both count as resolved. Resolution time is only taken
    from issues that carry a completed RESOLVED record.
    """
    stats = TeamMemberPerformance(
        id=member.id, name=member.name, email=member.email, department=member.department
    )
    durations = []
    for issue in issues:
        stats.total_assigned += 1
        if issue.status == IssueStatus.PENDING:
            stats.pending += 1
        elif issue.status == IssueStatus.IN_PROGRESS:
            stats.in_progress += 1
        else:
            stats.resolved += 1

        resolved_at = issue.completed_at(LifecycleStep.RESOLVED)
        if resolved_at is not None:
            seconds = max(0.0, (resolved_at - issue.created_at).total_seconds())
            durations.append(seconds / 86400)

    stats.resolution_rate = _percent(stats.resolved, stats.total_assigned, empty=0)
    if durations:
        stats.avg_resolution_days = round(sum(durations) / len(durations), 1)
    return stats


class IssueAnalytics:
    """Dashboard and team summaries, cached per role scope."""

    def __init__(
        self,
        repository: IssueRepository,
        cache: CacheInvalidationCoordinator,
        clock: Optional[Clock] = None,
        ttl: int = 300,
        team_ttl: int = 900,
    ):
        self.repository = repository
        self.cache = cache
        self.clock = clock or SystemClock()
        self.ttl = ttl
        self.team_ttl = team_ttl

    async def dashboard(self, actor: User) -> DashboardSummary:
        scope = policy.scope_filter(actor)
        if scope.deny_all:
            raise AuthorizationError("analytics", reason="inactive user")

        key = self.cache.key(ANALYTICS_NAMESPACE, "dashboard", {"scope": scope.cache_token()})
        cached = await self.cache.read(key)
        if cached is not None:
            try:
                return DashboardSummary.model_validate(cached)
            except PydanticValidationError as e:
                logger.warning(f"Discarding malformed cached dashboard {key}: {e}")

        generation = self.cache.generation
        issues, _ = await self.repository.find_many(scope, IssueFilters(), offset=0, limit=None)
        summary = summarize(issues, self.clock.now())
        await self.cache.write(key, summary.model_dump(mode="json"), self.ttl, generation=generation)
        return summary

    async def team_performance(self, actor: User) -> List[TeamMemberPerformance]:
        """Per-member workload for the actor's department (all departments for admins).

        Only active team members are reported, ordered by email.

        Raises:
            AuthorizationError: Actor is not an active admin or department head
        """
        policy.ensure_can_view_team_analytics(actor)
        department = actor.department if actor.role == UserRole.DEPARTMENT_HEAD else None

        key = self.cache.key(ANALYTICS_NAMESPACE, "team", {"department": department or "all"})
        cached = await self.cache.read(key)
        if cached is not None:
            try:
                return [TeamMemberPerformance.model_validate(item) for item in cached]
            except (PydanticValidationError, TypeError) as e:
                logger.warning(f"Discarding malformed cached team analytics {key}: {e}")

        generation = self.cache.generation
        members = await self.repository.find_users(role=UserRole.TEAM_MEMBER, department=department)
        report = []
        for member in sorted(members, key=lambda m: m.email):
            assigned, _ = await self.repository.find_many(
                IssueScope(assigned_to_id=member.id), IssueFilters(), offset=0, limit=None
            )
            report.append(member_performance(member, assigned))

        await self.cache.write(
            key, [item.model_dump(mode="json") for item in report], self.team_ttl, generation=generation
        )
        return report
