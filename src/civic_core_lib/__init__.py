"""Civic Core Library

Issue lifecycle, role policy, SLA and cache coordination for the civic issue
tracking platform.
"""

__version__ = "0.1.0"

# Export shared models and errors first (no dependencies)
from civic_core_lib.models import (
    Actor, Issue, IssueStatus, IssuePriority, LifecycleRecord, LifecycleStep,
    StepStatus, Comment, User, UserRole,
)
from civic_core_lib.errors import (
    IssueCoreError,
    ValidationError,
    NotFoundError,
    AuthorizationError,
    InvalidTransitionError,
    ConflictError,
    PersistenceError,
)


# Lazy import for the service layer; it pulls in redis and the repository package
def __getattr__(name):
    """Lazy import for IssueService and build_issue_service."""
    if name == "IssueService":
        from civic_core_lib.core.service import IssueService
        return IssueService
    if name == "build_issue_service":
        from civic_core_lib.factory import build_issue_service
        return build_issue_service
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    # Models
    "Actor", "Issue", "IssueStatus", "IssuePriority", "LifecycleRecord",
    "LifecycleStep", "StepStatus", "Comment", "User", "UserRole",
    # Errors
    "IssueCoreError", "ValidationError", "NotFoundError", "AuthorizationError",
    "InvalidTransitionError", "ConflictError", "PersistenceError",
    # Service (lazy loaded)
    "IssueService",
    "build_issue_service",
]
