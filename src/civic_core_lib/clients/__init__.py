"""HTTP clients for sibling services."""

from civic_core_lib.clients.base import BaseServiceClient
from civic_core_lib.clients.realtime_client import RealtimeEventClient

__all__ = [
    "BaseServiceClient",
    "RealtimeEventClient",
]
