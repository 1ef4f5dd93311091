"""Map core errors onto HTTP responses for FastAPI applications.

Response body mirrors the platform's existing REST envelope:
    {"success": false, "error": "...", "code": "...", ...}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from civic_core_lib.errors import IssueCoreError

logger = logging.getLogger(__name__)


async def issue_core_error_handler(request: Request, exc: IssueCoreError) -> JSONResponse:
    body = {"success": False, **exc.to_dict()}
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")

    headers = {}
    if getattr(exc, "retryable", False):
        headers["Retry-After"] = "1"
    return JSONResponse(status_code=exc.http_status, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IssueCoreError, issue_core_error_handler)
