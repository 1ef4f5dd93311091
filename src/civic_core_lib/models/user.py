"""User and role models.

An ``Actor`` is whoever calls the Issue Service. The core only needs the
(id, role, department, is_active) part of a user record; identity proofing
happens upstream at the gateway.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class UserRole(str, Enum):
    """
    Roles recognised by the role policy.

    ADMIN sees and mutates everything. DEPARTMENT_HEAD is scoped to one
    department. TEAM_MEMBER is scoped to the issues assigned to it.
    """

    ADMIN = "ADMIN"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    TEAM_MEMBER = "TEAM_MEMBER"

    @property
    def is_department_scoped(self) -> bool:
        return self in (UserRole.DEPARTMENT_HEAD, UserRole.TEAM_MEMBER)


class User(BaseModel):
    """A platform user; also used as the acting principal."""

    id: str = Field(description="User identifier", min_length=1, max_length=255)
    email: str = Field(description="Unique login email", min_length=3, max_length=320)
    name: Optional[str] = Field(default=None, max_length=200)
    role: UserRole = Field(default=UserRole.TEAM_MEMBER)
    department: Optional[str] = Field(
        default=None,
        description="Department tag; required for DEPARTMENT_HEAD and TEAM_MEMBER, absent for ADMIN",
    )
    is_active: bool = Field(default=True)

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v):
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v.strip().lower()

    @model_validator(mode="after")
    def department_matches_role(self) -> "User":
        if self.role.is_department_scoped:
            if not self.department or not self.department.strip():
                raise ValueError(f"{self.role.value} requires a department")
            self.department = self.department.strip()
        elif self.department is not None:
            # Admins are never department scoped
            self.department = None
        return self


Actor = User
