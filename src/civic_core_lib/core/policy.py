"""Role policy: the single authority on who may see and change what.

Rules:
- ADMIN: every issue, every field, hard delete
- DEPARTMENT_HEAD: issues of its own department; may change status,
  priority, assignment and descriptive text there; never department or delete
- TEAM_MEMBER: issues assigned to itself; may change status only
- Assignees are always active team members; a department head may only
  assign members of the issue's department
- Team performance analytics: ADMIN and DEPARTMENT_HEAD

Inactive actors are denied everything.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from civic_core_lib.errors import AuthorizationError
from civic_core_lib.models.issue import Comment, Issue
from civic_core_lib.models.user import User, UserRole

# Mutable issue fields, plus pseudo-fields for whole-issue actions
FIELD_TITLE = "title"
FIELD_DESCRIPTION = "description"
FIELD_ADDRESS = "address"
FIELD_STATUS = "status"
FIELD_PRIORITY = "priority"
FIELD_DEPARTMENT = "department"
FIELD_ASSIGNMENT = "assigned_to_id"
ACTION_DELETE = "delete"

MUTABLE_FIELDS = frozenset({
    FIELD_TITLE,
    FIELD_DESCRIPTION,
    FIELD_ADDRESS,
    FIELD_STATUS,
    FIELD_PRIORITY,
    FIELD_DEPARTMENT,
    FIELD_ASSIGNMENT,
})

DEPARTMENT_HEAD_FIELDS = frozenset({
    FIELD_TITLE,
    FIELD_DESCRIPTION,
    FIELD_ADDRESS,
    FIELD_STATUS,
    FIELD_PRIORITY,
    FIELD_ASSIGNMENT,
})

TEAM_MEMBER_FIELDS = frozenset({FIELD_STATUS})


@dataclass(frozen=True)
class IssueScope:
    """Query predicate restricting which issues an actor can see.

    ``None`` on a field means "no restriction". A scope that restricts
    nothing is the admin scope.
    """

    department: Optional[str] = None
    assigned_to_id: Optional[str] = None
    deny_all: bool = False

    @property
    def is_unrestricted(self) -> bool:
        return not self.deny_all and self.department is None and self.assigned_to_id is None

    def matches(self, issue: Issue) -> bool:
        if self.deny_all:
            return False
        if self.department is not None and issue.department != self.department:
            return False
        if self.assigned_to_id is not None and issue.assigned_to_id != self.assigned_to_id:
            return False
        return True

    def cache_token(self) -> str:
        """Stable string identifying this scope in cache keys"""
        if self.deny_all:
            return "none"
        if self.is_unrestricted:
            return "all"
        return f"dept={self.department or '*'}|assignee={self.assigned_to_id or '*'}"


def scope_filter(actor: User) -> IssueScope:
    if not actor.is_active:
        return IssueScope(deny_all=True)
    if actor.role == UserRole.ADMIN:
        return IssueScope()
    if actor.role == UserRole.DEPARTMENT_HEAD:
        return IssueScope(department=actor.department)
    return IssueScope(assigned_to_id=actor.id)


def can_view(actor: User, issue: Issue) -> bool:
    return scope_filter(actor).matches(issue)


def can_mutate(actor: User, issue: Issue, field: str) -> bool:
    """Whether ``actor`` may change ``field`` (or perform ``delete``) on ``issue``."""
    if not actor.is_active:
        return False
    if actor.role == UserRole.ADMIN:
        return field in MUTABLE_FIELDS or field == ACTION_DELETE
    if not can_view(actor, issue):
        return False
    if actor.role == UserRole.DEPARTMENT_HEAD:
        return field in DEPARTMENT_HEAD_FIELDS
    if actor.role == UserRole.TEAM_MEMBER:
        return field in TEAM_MEMBER_FIELDS
    return False


def can_delete(actor: User) -> bool:
    """Hard delete is admin-only."""
    return actor.is_active and actor.role == UserRole.ADMIN


def can_comment(actor: User, issue: Issue) -> bool:
    return actor.is_active and can_view(actor, issue)


def can_verify(actor: User, issue: Issue) -> bool:
    """Recording citizen verification needs the same rights as a status change"""
    return can_mutate(actor, issue, FIELD_STATUS)


def can_delete_comment(actor: User, issue: Issue, comment: Comment) -> bool:
    """Authors may remove their own comments; admins may remove any."""
    if not can_view(actor, issue):
        return False
    return actor.role == UserRole.ADMIN or comment.user_id == actor.id


def can_view_team_analytics(actor: User) -> bool:
    """Team performance is a management view: admins and department heads only."""
    return actor.is_active and actor.role in (UserRole.ADMIN, UserRole.DEPARTMENT_HEAD)


def can_assign_to(actor: User, issue: Issue, assignee: User) -> bool:
    """Only team members take assignments; a department head assigns within its department."""
    if assignee.role != UserRole.TEAM_MEMBER:
        return False
    if actor.role == UserRole.DEPARTMENT_HEAD:
        return assignee.department == issue.department
    return True


# ============================================================
# Raising variants used by the Issue Service
# ============================================================

def ensure_can_view(actor: User, issue: Issue) -> None:
    if not can_view(actor, issue):
        raise AuthorizationError("view", reason=_scope_reason(actor))


def ensure_can_mutate(actor: User, issue: Issue, fields: Iterable[str]) -> None:
    """Check every field before anything is written; the first denial aborts."""
    for field in sorted(fields):
        if not can_mutate(actor, issue, field):
            raise AuthorizationError("update", field=field, reason=f"role {actor.role.value}")


def ensure_can_delete(actor: User) -> None:
    if not can_delete(actor):
        raise AuthorizationError(ACTION_DELETE, reason="admin only")


def ensure_can_comment(actor: User, issue: Issue) -> None:
    if not can_comment(actor, issue):
        raise AuthorizationError("comment", reason=_scope_reason(actor))


def ensure_can_verify(actor: User, issue: Issue) -> None:
    if not can_verify(actor, issue):
        raise AuthorizationError("verify", field=FIELD_STATUS, reason=f"role {actor.role.value}")


def ensure_can_delete_comment(actor: User, issue: Issue, comment: Comment) -> None:
    if not can_delete_comment(actor, issue, comment):
        raise AuthorizationError("delete_comment", reason="only the author or an admin")


def ensure_can_view_team_analytics(actor: User) -> None:
    if not can_view_team_analytics(actor):
        raise AuthorizationError("team_analytics", reason=f"role {actor.role.value}")


def _scope_reason(actor: User) -> str:
    if not actor.is_active:
        return "inactive user"
    if actor.role == UserRole.DEPARTMENT_HEAD:
        return f"outside department {actor.department}"
    if actor.role == UserRole.TEAM_MEMBER:
        return "not assigned to this user"
    return ""
