"""Events published to the real-time / notification layer.

Publishing is fire-and-forget: the core never waits for acknowledgment and a
failed publish never fails the mutation that triggered it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class IssueEvent(str, Enum):
    ISSUE_CREATED = "issue-created"
    ISSUE_UPDATED = "issue-updated"
    ISSUE_DELETED = "issue-deleted"
    COMMENT_ADDED = "comment-added"


class EventEmitter(ABC):
    """Event Emitter collaborator contract."""

    @abstractmethod
    async def emit(self, event: IssueEvent, payload: Dict[str, Any]) -> None:
        pass


@dataclass
class EmittedEvent:
    event: IssueEvent
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RecordingEventEmitter(EventEmitter):
    """Keeps every event in memory; used in tests and local development."""

    def __init__(self):
        self.events: List[EmittedEvent] = []

    async def emit(self, event: IssueEvent, payload: Dict[str, Any]) -> None:
        self.events.append(EmittedEvent(event=event, payload=payload))

    def of_type(self, event: IssueEvent) -> List[EmittedEvent]:
        return [e for e in self.events if e.event == event]


class NullEventEmitter(EventEmitter):
    async def emit(self, event: IssueEvent, payload: Dict[str, Any]) -> None:
        logger.debug(f"Dropping {event.value} event (no emitter configured)")
