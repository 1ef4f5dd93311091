"""Actor extraction from API Gateway headers.

The gateway validates the user's JWT, strips any client-supplied X-User-*
headers and adds its own. The core trusts these headers without further
verification.

Headers:
    X-User-ID: required
    X-User-Email: required
    X-User-Role: ADMIN | DEPARTMENT_HEAD | TEAM_MEMBER (default TEAM_MEMBER)
    X-User-Department: required for DEPARTMENT_HEAD and TEAM_MEMBER
    X-User-Active: "false" marks a deactivated account
    X-Correlation-ID: optional request tracing id
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError

from civic_core_lib.models.user import User

logger = logging.getLogger(__name__)

_FALSE_VALUES = {"false", "0", "no"}


@dataclass
class RequestContext:
    """Acting user plus tracing information for one request."""

    actor: User
    correlation_id: Optional[str] = None


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency building the acting user from gateway headers.

    Usage in route:
        @router.put("/issues/{issue_id}")
        async def update_issue(
            issue_id: str,
            body: IssuePatch,
            context: RequestContext = Depends(get_request_context),
        ):
            return await service.update_issue(context.actor, issue_id, body)

    Raises:
        HTTPException: 401 if identity headers are missing or malformed
    """
    user_id = request.headers.get("X-User-ID")
    user_email = request.headers.get("X-User-Email")
    if not user_id or not user_email:
        logger.error("Missing X-User-ID / X-User-Email header in request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID and X-User-Email headers required (should be added by API Gateway)",
        )

    active_header = request.headers.get("X-User-Active", "true").strip().lower()

    try:
        actor = User(
            id=user_id,
            email=user_email,
            role=request.headers.get("X-User-Role", "TEAM_MEMBER").strip().upper(),
            department=request.headers.get("X-User-Department"),
            is_active=active_header not in _FALSE_VALUES,
        )
    except PydanticValidationError as e:
        logger.warning(f"Rejecting malformed identity headers for user {user_id}: {e.error_count()} errors")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid identity headers",
        )

    return RequestContext(
        actor=actor,
        correlation_id=request.headers.get("X-Correlation-ID"),
    )


def get_actor(request: Request) -> User:
    """Shortcut dependency when only the actor is needed."""
    return get_request_context(request).actor
