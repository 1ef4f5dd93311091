"""Issue Service: the operations the route layer calls.

Composes the role policy, SLA calculator, lifecycle engine, repository, cache
coordinator and event emitter.

Guarantees:
- every failure is an ``IssueCoreError``; repository exceptions never leak
- updates are all-or-nothing: every supplied field is authorized before any write
- lifecycle appends happen inside the repository transaction, planned against a
  snapshot re-read in that transaction
- cache invalidation and event publishing are best-effort and never fail a
  mutation that has already been persisted
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from civic_core_lib.config import CoreSettings
from civic_core_lib.core import policy
from civic_core_lib.core.analytics import DashboardSummary, IssueAnalytics, TeamMemberPerformance
from civic_core_lib.core.lifecycle import LifecycleEngine
from civic_core_lib.core.sla import calculate_sla, sla_deadline
from civic_core_lib.errors import (
    AuthorizationError,
    ConflictError,
    IssueCoreError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from civic_core_lib.events import EventEmitter, IssueEvent, NullEventEmitter
from civic_core_lib.infrastructure.cache import (
    ISSUES_NAMESPACE,
    CacheInvalidationCoordinator,
    InMemoryCache,
    IssueCache,
)
from civic_core_lib.models.issue import (
    Comment,
    Issue,
    IssueCreate,
    IssueFilters,
    IssuePage,
    IssuePatch,
    IssueStatus,
    IssueView,
    Pagination,
)
from civic_core_lib.models.user import User, UserRole
from civic_core_lib.repository.base import IssueRepository, StaleIssueError
from civic_core_lib.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class IssueService:
    """Orchestrates issue reads and mutations for an acting user.

    Usage:
        service = IssueService(repository, cache=RedisCache(redis), emitter=emitter)
        page = await service.list_issues(actor, {"status": "PENDING", "page": 2})
        issue = await service.update_issue(actor, issue_id, {"status": "RESOLVED"})
    """

    def __init__(
        self,
        repository: IssueRepository,
        cache: Optional[IssueCache] = None,
        emitter: Optional[EventEmitter] = None,
        clock: Optional[Clock] = None,
        settings: Optional[CoreSettings] = None,
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.settings = settings or CoreSettings()
        self.cache = CacheInvalidationCoordinator(
            cache or InMemoryCache(self.clock),
            key_prefix=self.settings.cache_key_prefix,
        )
        self.emitter = emitter or NullEventEmitter()
        self.engine = LifecycleEngine(self.clock)
        self.analytics = IssueAnalytics(
            repository,
            self.cache,
            clock=self.clock,
            ttl=self.settings.analytics_cache_ttl,
            team_ttl=self.settings.team_analytics_cache_ttl,
        )

    # ============================================================
    # Reads
    # ============================================================

    async def list_issues(
        self,
        actor: User,
        filters: Union[IssueFilters, Mapping[str, Any], None] = None,
    ) -> IssuePage:
        """List issues visible to ``actor``, narrowed by ``filters``.

        The role scope is always applied on top of caller filters, so a
        department head asking for another department simply gets nothing.

        Raises:
            ValidationError: Malformed filter or pagination values
            AuthorizationError: Inactive actor
        """
        filters = self._parse_filters(filters)
        scope = policy.scope_filter(actor)
        if scope.deny_all:
            raise AuthorizationError("list", reason="inactive user")

        key = self.cache.key(
            ISSUES_NAMESPACE,
            "list",
            {"scope": scope.cache_token(), "filters": filters.model_dump(mode="json")},
        )
        cached = await self._cached_page(key)
        if cached is not None:
            issues, total = cached
        else:
            generation = self.cache.generation
            async with self._persistence("list_issues"):
                issues, total = await self.repository.find_many(
                    scope, filters, offset=filters.offset, limit=filters.limit
                )
            await self.cache.write(
                key,
                {"items": [issue.model_dump(mode="json") for issue in issues], "total": total},
                self.settings.list_cache_ttl,
                generation=generation,
            )

        now = self.clock.now()
        return IssuePage(
            items=[self._view(issue, now) for issue in issues],
            pagination=Pagination(
                page=filters.page,
                limit=filters.limit,
                total=total,
                pages=math.ceil(total / filters.limit),
            ),
        )

    async def get_issue(self, actor: User, issue_id: str) -> IssueView:
        """Raises NotFoundError if absent, AuthorizationError if out of scope."""
        async with self._persistence("get_issue"):
            issue = await self.repository.get(issue_id)
        if issue is None:
            raise NotFoundError("Issue", issue_id)
        policy.ensure_can_view(actor, issue)
        return self._view(issue, self.clock.now())

    async def dashboard(self, actor: User) -> DashboardSummary:
        async with self._persistence("dashboard"):
            return await self.analytics.dashboard(actor)

    async def team_performance(self, actor: User) -> List[TeamMemberPerformance]:
        """Raises AuthorizationError unless the actor is an admin or department head."""
        async with self._persistence("team_performance"):
            return await self.analytics.team_performance(actor)

    # ============================================================
    # Mutations
    # ============================================================

    async def create_issue(
        self, actor: User, payload: Union[IssueCreate, Mapping[str, Any]]
    ) -> IssueView:
        """Submit a new report: status PENDING, lifecycle REPORTED + ACKNOWLEDGED."""
        if not actor.is_active:
            raise AuthorizationError("create", reason="inactive user")
        data = self._parse(IssueCreate, payload)

        now = self.clock.now()
        issue = Issue(
            **data.model_dump(),
            status=IssueStatus.PENDING,
            reported_by_id=actor.id,
            lifecycle=self.engine.initial_records(now),
            created_at=now,
            updated_at=now,
            sla_deadline=sla_deadline(now, data.priority),
        )

        async with self._persistence("create_issue"):
            created = await self.repository.create(issue)

        view = self._view(created, now)
        await self.cache.invalidate("create", created.id)
        await self._publish(IssueEvent.ISSUE_CREATED, view.model_dump(mode="json"))
        logger.info(f"New issue created: {created.id} by {actor.email}")
        return view

    async def update_issue(
        self,
        actor: User,
        issue_id: str,
        patch: Union[IssuePatch, Mapping[str, Any]],
    ) -> IssueView:
        """Apply a partial update atomically.

        Raises:
            ValidationError: Malformed patch, or an inactive assignee
            NotFoundError: Unknown issue or assignee
            AuthorizationError: Any supplied field the actor may not change
            InvalidTransitionError: Rejected status move
            ConflictError: Concurrent modification; safe to retry
        """
        patch = self._parse(IssuePatch, patch)
        changes = patch.supplied()
        if not changes:
            raise ValidationError("Update must contain at least one field")

        async with self._persistence("update_issue"):
            async with self.repository.transaction(issue_id) as tx:
                current = await tx.load()
                if current is None:
                    raise NotFoundError("Issue", issue_id)

                policy.ensure_can_view(actor, current)
                policy.ensure_can_mutate(actor, current, changes.keys())

                assignee = changes.get("assigned_to_id")
                if assignee is not None and assignee != current.assigned_to_id:
                    await self._require_assignee(actor, current, assignee)

                plan = self.engine.plan_update(current, changes)
                updated = await tx.apply(plan)

        view = self._view(updated, self.clock.now())
        if plan.is_noop:
            logger.debug(f"Update of {issue_id} by {actor.email} changed nothing")
            return view

        await self.cache.invalidate("update", issue_id)
        await self._publish(IssueEvent.ISSUE_UPDATED, view.model_dump(mode="json"))
        steps = ", ".join(step.value for step in plan.appended_steps) or "none"
        logger.info(f"Issue updated: {issue_id} by {actor.email} (lifecycle appended: {steps})")
        return view

    async def verify_resolution(
        self, actor: User, issue_id: str, notes: Optional[str] = None
    ) -> IssueView:
        """Record the citizen's confirmation that a resolved issue is fixed.

        Raises:
            InvalidTransitionError: The issue has not been resolved yet
        """
        async with self._persistence("verify_resolution"):
            async with self.repository.transaction(issue_id) as tx:
                current = await tx.load()
                if current is None:
                    raise NotFoundError("Issue", issue_id)
                policy.ensure_can_view(actor, current)
                policy.ensure_can_verify(actor, current)
                plan = self.engine.plan_verification(current, notes=notes)
                updated = await tx.apply(plan)

        view = self._view(updated, self.clock.now())
        if not plan.is_noop:
            await self.cache.invalidate("verify", issue_id)
            await self._publish(IssueEvent.ISSUE_UPDATED, view.model_dump(mode="json"))
            logger.info(f"Issue verified by citizen: {issue_id} recorded by {actor.email}")
        return view

    async def delete_issue(self, actor: User, issue_id: str) -> None:
        """Admin-only hard delete, cascading to comments, attachments and lifecycle."""
        policy.ensure_can_delete(actor)

        async with self._persistence("delete_issue"):
            deleted = await self.repository.delete(issue_id)
        if not deleted:
            raise NotFoundError("Issue", issue_id)

        await self.cache.invalidate("delete", issue_id)
        await self._publish(IssueEvent.ISSUE_DELETED, {"id": issue_id})
        logger.info(f"Issue deleted: {issue_id} by {actor.email}")

    async def add_comment(self, actor: User, issue_id: str, content: Optional[str]) -> Comment:
        if content is None or not str(content).strip():
            raise ValidationError(
                "Comment content is required",
                details=[{"field": "content", "message": "Comment content is required"}],
            )

        async with self._persistence("add_comment"):
            issue = await self.repository.get(issue_id)
        if issue is None:
            raise NotFoundError("Issue", issue_id)
        policy.ensure_can_comment(actor, issue)

        comment = self._parse(
            Comment,
            {"issue_id": issue_id, "user_id": actor.id, "content": content, "created_at": self.clock.now()},
        )
        async with self._persistence("add_comment"):
            saved = await self.repository.add_comment(comment)

        await self.cache.invalidate("comment", issue_id)
        await self._publish(
            IssueEvent.COMMENT_ADDED,
            {"issue_id": issue_id, "comment": saved.model_dump(mode="json")},
        )
        return saved

    async def delete_comment(self, actor: User, issue_id: str, comment_id: str) -> None:
        async with self._persistence("delete_comment"):
            issue = await self.repository.get(issue_id)
        if issue is None:
            raise NotFoundError("Issue", issue_id)
        policy.ensure_can_view(actor, issue)

        comment = next((c for c in issue.comments if c.id == comment_id), None)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        policy.ensure_can_delete_comment(actor, issue, comment)

        async with self._persistence("delete_comment"):
            deleted = await self.repository.delete_comment(issue_id, comment_id)
        if not deleted:
            raise NotFoundError("Comment", comment_id)
        await self.cache.invalidate("comment-delete", issue_id)

    # ============================================================
    # Helpers
    # ============================================================

    @asynccontextmanager
    async def _persistence(self, operation: str) -> AsyncIterator[None]:
        """Translate repository exceptions into core errors."""
        try:
            yield
        except IssueCoreError:
            raise
        except StaleIssueError as e:
            logger.info(f"{operation} lost a concurrent update race: {e}")
            raise ConflictError(f"Concurrent modification during {operation}; retry") from e
        except (asyncio.TimeoutError, TimeoutError) as e:
            logger.error(f"{operation} timed out in the repository: {e}")
            raise PersistenceError(operation, e, retryable=True) from e
        except Exception as e:
            logger.error(f"{operation} failed in the repository: {e}")
            raise PersistenceError(operation, e) from e

    def _parse(self, model, payload):
        if isinstance(payload, model):
            return payload
        if payload is None:
            raise ValidationError("Request body is required")
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

    def _parse_filters(self, filters: Union[IssueFilters, Mapping[str, Any], None]) -> IssueFilters:
        if filters is None:
            filters = {}
        if not isinstance(filters, IssueFilters):
            data = {k: v for k, v in dict(filters).items() if v is not None}
            data.setdefault("limit", self.settings.default_page_size)
            filters = self._parse(IssueFilters, data)
        if filters.limit > self.settings.max_page_size:
            raise ValidationError(
                f"limit must be at most {self.settings.max_page_size}",
                details=[{"field": "limit", "message": f"maximum is {self.settings.max_page_size}"}],
            )
        return filters

    async def _cached_page(self, key: str) -> Optional[tuple]:
        cached = await self.cache.read(key)
        if cached is None:
            return None
        try:
            issues = [Issue.model_validate(item) for item in cached["items"]]
            return issues, int(cached["total"])
        except (PydanticValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed cached list {key}: {e}")
            return None

    async def _require_assignee(self, actor: User, issue: Issue, user_id: str) -> User:
        user = await self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not user.is_active:
            raise ValidationError(
                f"Cannot assign inactive user {user_id}",
                details=[{"field": "assigned_to_id", "message": "assignee is inactive"}],
            )
        if not policy.can_assign_to(actor, issue, user):
            if user.role != UserRole.TEAM_MEMBER:
                message = "assignee must be a team member"
            else:
                message = f"assignee must belong to department {issue.department}"
            raise ValidationError(
                f"Cannot assign {user_id} to {issue.id}: {message}",
                details=[{"field": "assigned_to_id", "message": message}],
            )
        return user

    async def _publish(self, event: IssueEvent, payload: dict) -> None:
        try:
            await self.emitter.emit(event, payload)
        except Exception as e:
            logger.warning(f"Failed to publish {event.value}: {e}")

    def _view(self, issue: Issue, now: datetime) -> IssueView:
        sla = calculate_sla(issue.created_at, issue.status, issue.priority, now)
        return IssueView.model_validate({**issue.model_dump(), "sla": sla})
