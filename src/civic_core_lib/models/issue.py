"""Issue data models.

Key Models:
- Issue: a reported civic problem (pothole, streetlight outage, missed pickup)
- IssueStatus: coarse user-facing status (PENDING → IN_PROGRESS → RESOLVED → CLOSED)
- LifecycleRecord: append-only step events (REPORTED … CITIZEN_VERIFIED)
- Comment / Attachment: dependent records owned by an Issue
- IssueCreate / IssuePatch / IssueFilters: validated caller input
- IssueView / IssuePage: read models returned to callers, with SLA attached

Architecture:
- Two-track lifecycle: Status (coarse summary) + LifecycleRecord steps (detail)
- Records are append-only; the only mutation is CURRENT → COMPLETED
- Repository abstraction (no direct database imports)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Status & Lifecycle Enums
# ============================================================

class IssueStatus(str, Enum):
    """
    Coarse issue status.

    Lifecycle Flow:
      PENDING → IN_PROGRESS → RESOLVED → CLOSED
             ↘─────────────↗

    Moves are forward-only. CLOSED is reachable from RESOLVED only.
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_closed(self) -> bool:
        """RESOLVED and CLOSED issues no longer accrue SLA time"""
        return self in (IssueStatus.RESOLVED, IssueStatus.CLOSED)


_STATUS_RANK = {
    IssueStatus.PENDING: 0,
    IssueStatus.IN_PROGRESS: 1,
    IssueStatus.RESOLVED: 2,
    IssueStatus.CLOSED: 3,
}


class IssuePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class LifecycleStep(str, Enum):
    """
    Lifecycle steps in causal order.

    Each step is tracked independently with its own StepStatus, so several
    can coexist (REPORTED=COMPLETED while ACKNOWLEDGED=CURRENT).
    """

    REPORTED = "REPORTED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    ASSIGNED = "ASSIGNED"
    RESOLVED = "RESOLVED"
    CITIZEN_VERIFIED = "CITIZEN_VERIFIED"

    @property
    def order(self) -> int:
        return list(LifecycleStep).index(self)


class StepStatus(str, Enum):
    PENDING = "PENDING"
    CURRENT = "CURRENT"
    COMPLETED = "COMPLETED"


# ============================================================
# Dependent Records
# ============================================================

class LifecycleRecord(BaseModel):
    """One append-only event in an issue's progression."""

    id: str = Field(default_factory=lambda: f"lcr_{uuid4().hex[:12]}")
    step: LifecycleStep
    status: StepStatus = Field(default=StepStatus.PENDING)
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED


class Comment(BaseModel):
    """Immutable remark on an issue. Create and delete only."""

    id: str = Field(default_factory=lambda: f"cmt_{uuid4().hex[:12]}")
    issue_id: str
    user_id: str
    content: str = Field(min_length=1, max_length=5000)
    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Comment content is required")
        return v.strip()


class Attachment(BaseModel):
    """File metadata; the upload itself is handled elsewhere."""

    id: str = Field(default_factory=lambda: f"att_{uuid4().hex[:12]}")
    issue_id: str
    filename: str = Field(min_length=1, max_length=255)
    filepath: str = Field(min_length=1)
    mimetype: str = Field(min_length=1, max_length=255)
    size: int = Field(ge=0)
    created_at: datetime = Field(default_factory=_utc_now)


# ============================================================
# Issue
# ============================================================

class Issue(BaseModel):
    """
    Root issue entity.
    Represents one citizen report tracked through its lifecycle.
    """

    id: str = Field(
        default_factory=lambda: f"iss_{uuid4().hex[:12]}",
        description="Unique, immutable issue identifier",
    )
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    department: str = Field(min_length=1, max_length=120)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)

    priority: IssuePriority = Field(default=IssuePriority.MEDIUM)
    status: IssueStatus = Field(default=IssueStatus.PENDING)

    reported_by_id: Optional[str] = Field(
        default=None, description="Reporter; null when the reporter account was deleted"
    )
    assigned_to_id: Optional[str] = Field(default=None, description="Assigned team member")

    lifecycle: List[LifecycleRecord] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    sla_deadline: Optional[datetime] = Field(
        default=None, description="created_at plus the priority allowance"
    )

    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")

    @field_validator("title", "department")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_timestamp_ordering(self) -> "Issue":
        if self.created_at > self.updated_at:
            raise ValueError(
                f"created_at ({self.created_at}) cannot be after updated_at ({self.updated_at})"
            )
        return self

    # ============================================================
    # Lifecycle helpers
    # ============================================================
    def records_for(self, step: LifecycleStep) -> List[LifecycleRecord]:
        return [record for record in self.lifecycle if record.step == step]

    def has_completed(self, step: LifecycleStep) -> bool:
        return any(record.is_completed for record in self.records_for(step))

    def completed_at(self, step: LifecycleStep) -> Optional[datetime]:
        """Timestamp of the first COMPLETED record for ``step``"""
        for record in self.lifecycle:
            if record.step == step and record.is_completed:
                return record.created_at
        return None


class IssueView(Issue):
    """Issue as returned to callers, with the live SLA string attached."""

    sla: str = Field(description="'Closed', 'Overdue', 'Nh left' or 'Nd left'")


# ============================================================
# Caller Input
# ============================================================

class IssueCreate(BaseModel):
    """Payload for submitting a new report."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    department: str = Field(min_length=1, max_length=120)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)
    priority: IssuePriority = Field(default=IssuePriority.MEDIUM)

    @field_validator("title", "description", "department", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


_NULLABLE_PATCH_FIELDS = {"address", "assigned_to_id"}


class IssuePatch(BaseModel):
    """
    Partial update. Only supplied fields are considered; ``assigned_to_id=None``
    explicitly unassigns, whereas omitting it leaves the assignment alone.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    department: Optional[str] = Field(default=None, min_length=1, max_length=120)
    address: Optional[str] = Field(default=None, max_length=500)
    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None
    assigned_to_id: Optional[str] = Field(default=None, min_length=1)

    @field_validator("title", "description", "department", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def no_null_for_required(self) -> "IssuePatch":
        for name in self.model_fields_set:
            if name not in _NULLABLE_PATCH_FIELDS and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def supplied(self) -> dict:
        """Fields the caller actually sent, with their values."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class IssueFilters(BaseModel):
    """List filters and pagination, as sent by the route layer."""

    model_config = ConfigDict(extra="forbid")

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, description="Upper bound comes from CoreSettings.max_page_size")
    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None
    department: Optional[str] = Field(default=None, min_length=1)
    assigned_to_id: Optional[str] = Field(default=None, min_length=1)
    search: Optional[str] = Field(default=None, max_length=200)

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class IssuePage(BaseModel):
    items: List[IssueView]
    pagination: Pagination
