"""Request-boundary helpers for services embedding the issue core.

Actor extraction from API Gateway headers and HTTP mapping of core errors.
"""

from civic_core_lib.auth.exception_handlers import register_exception_handlers
from civic_core_lib.auth.request_context import RequestContext, get_actor, get_request_context

__all__ = [
    "RequestContext",
    "get_actor",
    "get_request_context",
    "register_exception_handlers",
]
