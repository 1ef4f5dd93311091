"""HTTP event emitter for the real-time gateway.

The gateway fans events out to connected dashboards (Socket.IO) and to the
notification service. Delivery is fire-and-forget: transport errors and non-2xx
responses are logged and dropped.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from civic_core_lib.clients.base import BaseServiceClient
from civic_core_lib.events import EventEmitter, IssueEvent

logger = logging.getLogger(__name__)


class RealtimeEventClient(BaseServiceClient, EventEmitter):
    """Publishes issue events to ``POST {base_url}/api/v1/events``.

    Usage:
        emitter = RealtimeEventClient(base_url="http://civic-realtime:4000")
        await emitter.emit(IssueEvent.ISSUE_CREATED, issue.model_dump(mode="json"))
    """

    def __init__(
        self,
        base_url: str = "http://civic-realtime:4000",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

    async def emit(self, event: IssueEvent, payload: Dict[str, Any]) -> None:
        body = {
            "event": event.value,
            "payload": payload,
            "emitted_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            async with self._get_client() as client:
                response = await client.post(
                    f"{self.base_url}/api/v1/events",
                    json=body,
                    headers=self._headers(),
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to publish {event.value} to {self.base_url}: {e}")
            return

        logger.debug(f"Published {event.value} event")
