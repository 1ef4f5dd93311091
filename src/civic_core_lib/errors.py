"""Typed failures raised by the civic issue core.

Every operation of the Issue Service either returns a plain result or raises
one of the exceptions below. Persistence-layer exceptions are never surfaced
directly; the service wraps them into ``ConflictError`` or ``PersistenceError``.

Hierarchy:
- IssueCoreError
  - ValidationError (400)
  - NotFoundError (404)
  - AuthorizationError (403)
  - InvalidTransitionError (400)
  - ConflictError (409)
  - PersistenceError (503)
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class IssueCoreError(Exception):
    """Base class for all core failures."""

    code: str = "issue_core_error"
    http_status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "error": self.message}


class ValidationError(IssueCoreError):
    """Malformed input: bad coordinates, too-short text, invalid enum value."""

    code = "validation_error"
    http_status = 400

    def __init__(self, message: str, details: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.details = details or []

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Flatten a pydantic error into field/message pairs."""
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", "invalid value"),
            }
            for err in exc.errors()
        ]
        return cls("Validation failed", details=details)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"] = self.details
        return data


class NotFoundError(IssueCoreError):
    code = "not_found"
    http_status = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class AuthorizationError(IssueCoreError):
    """Actor lacks permission; carries the denied action and field."""

    code = "access_denied"
    http_status = 403

    def __init__(self, action: str, field: Optional[str] = None, reason: str = ""):
        target = f"{action}:{field}" if field else action
        message = f"Access denied for {target}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.action = action
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["action"] = self.action
        data["field"] = self.field
        return data


class InvalidTransitionError(IssueCoreError):
    """Lifecycle engine rejected an out-of-order step or status move."""

    code = "invalid_transition"
    http_status = 400

    def __init__(self, current: str, requested: str, reason: str = ""):
        message = f"Invalid transition: {current} → {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.current = current
        self.requested = requested


class ConflictError(IssueCoreError):
    """Concurrent mutation detected; retrying from fresh state is safe."""

    code = "conflict"
    http_status = 409
    retryable = True


class PersistenceError(IssueCoreError):
    """The repository failed; the operation was aborted."""

    code = "persistence_error"
    http_status = 503

    def __init__(self, operation: str, cause: Optional[BaseException] = None, retryable: bool = False):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Persistence failure during {operation}{detail}")
        self.operation = operation
        self.retryable = retryable
