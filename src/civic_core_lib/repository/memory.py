"""In-memory repository for development and tests.

Transactions are serialized per issue with an ``asyncio.Lock`` and, in
addition, version-checked on ``apply()``.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from civic_core_lib.core.lifecycle import TransitionPlan, apply_plan
from civic_core_lib.core.policy import IssueScope
from civic_core_lib.models.issue import Comment, Issue, IssueFilters
from civic_core_lib.models.user import User, UserRole
from civic_core_lib.repository.base import (
    IssueRepository,
    IssueTransaction,
    RepositoryError,
    StaleIssueError,
)

logger = logging.getLogger(__name__)


def _matches_filters(issue: Issue, filters: IssueFilters) -> bool:
    if filters.status is not None and issue.status != filters.status:
        return False
    if filters.priority is not None and issue.priority != filters.priority:
        return False
    if filters.department is not None and issue.department != filters.department:
        return False
    if filters.assigned_to_id is not None and issue.assigned_to_id != filters.assigned_to_id:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystacks = (issue.title, issue.description, issue.address or "")
        if not any(needle in text.lower() for text in haystacks):
            return False
    return True


class _MemoryTransaction(IssueTransaction):
    def __init__(self, repository: "InMemoryIssueRepository", issue_id: str):
        self._repository = repository
        self._issue_id = issue_id
        self._loaded_version: Optional[int] = None

    async def load(self) -> Optional[Issue]:
        # Yield so concurrent callers genuinely interleave around the lock
        await asyncio.sleep(0)
        issue = self._repository._issues.get(self._issue_id)
        if issue is None:
            self._loaded_version = None
            return None
        self._loaded_version = issue.version
        return issue.model_copy(deep=True)

    async def apply(self, plan: TransitionPlan) -> Issue:
        stored = self._repository._issues.get(self._issue_id)
        current_version = stored.version if stored else None
        if stored is None or current_version != self._loaded_version:
            raise StaleIssueError(self._issue_id, self._loaded_version, current_version)

        if plan.is_noop:
            return stored.model_copy(deep=True)

        updated = apply_plan(stored, plan)
        updated = updated.model_copy(update={"version": stored.version + 1})
        self._repository._issues[self._issue_id] = updated
        self._loaded_version = updated.version
        return updated.model_copy(deep=True)


class InMemoryIssueRepository(IssueRepository):
    """Dictionary-backed repository; every read returns a deep copy."""

    def __init__(self, users: Optional[Iterable[User]] = None):
        self._issues: Dict[str, Issue] = {}
        self._users: Dict[str, User] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        for user in users or []:
            self.add_user(user)

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

    def _lock_for(self, issue_id: str) -> asyncio.Lock:
        lock = self._locks.get(issue_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[issue_id] = lock
        return lock

    @asynccontextmanager
    async def _locked(self, issue_id: str) -> AsyncIterator[None]:
        """Hold the issue's lock; forget the lock once the issue no longer exists."""
        lock = self._lock_for(issue_id)
        try:
            async with lock:
                yield
        finally:
            if issue_id not in self._issues and not lock.locked() and self._locks.get(issue_id) is lock:
                del self._locks[issue_id]

    async def create(self, issue: Issue) -> Issue:
        if issue.id in self._issues:
            raise RepositoryError(f"Issue {issue.id} already exists")
        self._issues[issue.id] = issue.model_copy(deep=True)
        return issue.model_copy(deep=True)

    async def get(self, issue_id: str) -> Optional[Issue]:
        issue = self._issues.get(issue_id)
        return issue.model_copy(deep=True) if issue else None

    async def find_many(
        self,
        scope: IssueScope,
        filters: IssueFilters,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Issue], int]:
        matches = [
            issue for issue in self._issues.values()
            if scope.matches(issue) and _matches_filters(issue, filters)
        ]
        # dict preserves insertion order, so equal timestamps keep newest-inserted first
        matches = list(reversed(matches))
        matches.sort(key=lambda issue: issue.created_at, reverse=True)
        total = len(matches)
        end = None if limit is None else offset + limit
        return [issue.model_copy(deep=True) for issue in matches[offset:end]], total

    async def delete(self, issue_id: str) -> bool:
        async with self._locked(issue_id):
            removed = self._issues.pop(issue_id, None)
        return removed is not None

    async def add_comment(self, comment: Comment) -> Comment:
        async with self._locked(comment.issue_id):
            issue = self._issues.get(comment.issue_id)
            if issue is None:
                raise RepositoryError(f"Issue {comment.issue_id} does not exist")
            comments = [*issue.comments, comment.model_copy()]
            self._issues[issue.id] = issue.model_copy(
                update={"comments": comments, "version": issue.version + 1}
            )
        return comment.model_copy()

    async def delete_comment(self, issue_id: str, comment_id: str) -> bool:
        async with self._locked(issue_id):
            issue = self._issues.get(issue_id)
            if issue is None:
                return False
            remaining = [c for c in issue.comments if c.id != comment_id]
            if len(remaining) == len(issue.comments):
                return False
            self._issues[issue_id] = issue.model_copy(
                update={"comments": remaining, "version": issue.version + 1}
            )
        return True

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def find_users(
        self,
        role: Optional[UserRole] = None,
        department: Optional[str] = None,
        active_only: bool = True,
    ) -> List[User]:
        return [
            user.model_copy() for user in self._users.values()
            if (role is None or user.role == role)
            and (department is None or user.department == department)
            and (user.is_active or not active_only)
        ]

    @asynccontextmanager
    async def transaction(self, issue_id: str) -> AsyncIterator[IssueTransaction]:
        async with self._locked(issue_id):
            yield _MemoryTransaction(self, issue_id)
