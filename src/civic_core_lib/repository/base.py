"""
Repository interface for issue persistence.

The core never talks to a database directly. A repository implementation
(ORM-backed in production, in-memory for development and tests) must honour
this contract.

Per-issue mutations go through ``transaction(issue_id)``: the core re-reads
the issue with ``load()`` and persists a ``TransitionPlan`` with ``apply()``
inside the same boundary. Implementations either serialize transactions per
issue (row lock, ``SELECT … FOR UPDATE``) or check the ``version`` read by
``load()`` and raise ``StaleIssueError`` on mismatch.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional, Tuple

from civic_core_lib.core.lifecycle import TransitionPlan
from civic_core_lib.core.policy import IssueScope
from civic_core_lib.models.issue import Comment, Issue, IssueFilters
from civic_core_lib.models.user import User, UserRole


class RepositoryError(Exception):
    """Base class for failures raised by repository implementations."""


class StaleIssueError(RepositoryError):
    """The issue changed (or vanished) between ``load()`` and ``apply()``."""

    def __init__(self, issue_id: str, expected_version: Optional[int], actual_version: Optional[int]):
        super().__init__(
            f"Issue {issue_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.issue_id = issue_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class IssueTransaction(ABC):
    """Atomic read-modify-write boundary for one issue."""

    @abstractmethod
    async def load(self) -> Optional[Issue]:
        """Read the current issue state inside the transaction.

        Returns:
            The issue, or None if it does not exist
        """
        pass

    @abstractmethod
    async def apply(self, plan: TransitionPlan) -> Issue:
        """Persist field changes, record flips and appended records atomically.

        Returns:
            The issue as stored after the write

        Raises:
            StaleIssueError: If the issue changed since ``load()``
        """
        pass


class IssueRepository(ABC):
    """Abstract persistence contract the Issue Service calls into."""

    @abstractmethod
    async def create(self, issue: Issue) -> Issue:
        """Insert a new issue together with its initial lifecycle records."""
        pass

    @abstractmethod
    async def get(self, issue_id: str) -> Optional[Issue]:
        """Fetch one issue with lifecycle (insertion order), comments and attachments."""
        pass

    @abstractmethod
    async def find_many(
        self,
        scope: IssueScope,
        filters: IssueFilters,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Issue], int]:
        """Query issues matching both ``scope`` and ``filters``.

        ``filters.search`` matches title, description or address,
        case-insensitively. Results are ordered newest first.

        Args:
            scope: Role scope from the role policy
            filters: Caller filters (pagination fields are ignored here)
            offset: Rows to skip
            limit: Maximum rows to return; None returns all

        Returns:
            (page of issues, total number of matches)
        """
        pass

    @abstractmethod
    async def delete(self, issue_id: str) -> bool:
        """Remove an issue with its comments, attachments and lifecycle records.

        Returns:
            False if the issue did not exist
        """
        pass

    @abstractmethod
    async def add_comment(self, comment: Comment) -> Comment:
        pass

    @abstractmethod
    async def delete_comment(self, issue_id: str, comment_id: str) -> bool:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_users(
        self,
        role: Optional[UserRole] = None,
        department: Optional[str] = None,
        active_only: bool = True,
    ) -> List[User]:
        """List users, optionally narrowed by role and department."""
        pass

    @abstractmethod
    def transaction(self, issue_id: str) -> AsyncContextManager[IssueTransaction]:
        """Open the per-issue read-modify-write boundary.

        Usage:
            async with repository.transaction(issue_id) as tx:
                issue = await tx.load()
                plan = engine.plan_update(issue, changes)
                issue = await tx.apply(plan)
        """
        pass
