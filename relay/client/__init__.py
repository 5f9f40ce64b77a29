"""Consumer-side signaling client."""
from __future__ import annotations

from .consumer import ConsumerClient, connect_consumer
from .negotiation import NegotiationSession, NegotiationState, RemoteMedia, StatusLevel, StatusUpdate

__all__ = [
    "ConsumerClient",
    "NegotiationSession",
    "NegotiationState",
    "RemoteMedia",
    "StatusLevel",
    "StatusUpdate",
    "connect_consumer",
]
