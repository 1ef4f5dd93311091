"""
Shared data models for the civic issue core.

Pydantic models used by the Issue Service, repositories and the route layer.
"""

from civic_core_lib.models.issue import (
    # Core issue model
    Issue,
    IssueStatus,
    IssuePriority,

    # Lifecycle
    LifecycleRecord,
    LifecycleStep,
    StepStatus,

    # Dependent records
    Comment,
    Attachment,

    # Input and read models
    IssueCreate,
    IssuePatch,
    IssueFilters,
    IssueView,
    IssuePage,
    Pagination,
)
from civic_core_lib.models.user import Actor, User, UserRole

__all__ = [
    # Core issue
    "Issue", "IssueStatus", "IssuePriority",
    # Lifecycle
    "LifecycleRecord", "LifecycleStep", "StepStatus",
    # Dependent records
    "Comment", "Attachment",
    # Input and read models
    "IssueCreate", "IssuePatch", "IssueFilters", "IssueView", "IssuePage", "Pagination",
    # Users
    "Actor", "User", "UserRole",
]
