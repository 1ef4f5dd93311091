"""Base client for calls from the issue core to sibling services."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """Base class for internal service-to-service HTTP clients.

    Acting-user context is propagated via X-User-* headers.

    Usage:
        class RealtimeEventClient(BaseServiceClient):
            async def emit(self, event, payload):
                async with self._get_client() as client:
                    response = await client.post(
                        f"{self.base_url}/api/v1/events",
                        json={"event": event.value, "payload": payload},
                        headers=self._headers(),
                    )
                    response.raise_for_status()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize service client.

        Args:
            base_url: Service base URL (e.g., http://civic-realtime:4000)
            timeout: Request timeout in seconds (default: 5.0)
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

        logger.info(f"Initialized {self.__class__.__name__} with base_url={self.base_url}")

    def _headers(
        self,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> dict:
        """Generate request headers with user context.

        Args:
            user_id: Acting user for X-User-ID
            user_role: Acting user's role for X-User-Role
            correlation_id: Optional correlation ID for request tracing
        """
        headers = {"Content-Type": "application/json"}

        if user_id:
            headers["X-User-ID"] = user_id

        if user_role:
            headers["X-User-Role"] = user_role

        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client instance with configured timeout.

        Returns:
            Configured AsyncClient ready for use with async context manager
        """
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
