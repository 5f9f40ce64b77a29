"""Live transport handles for signaling connections."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

SendCallable = Callable[[dict], Awaitable[None]]


@dataclass(slots=True)
class SignalingConnection:
    """Connection wrapper for signaling participants."""

    connection_id: str
    send: SendCallable


class ConnectionDirectory:
    """Resolve connection ids to the transport that can reach them."""

    def __init__(self) -> None:
        self._connections: Dict[str, SignalingConnection] = {}

    def attach(self, connection: SignalingConnection) -> None:
        self._connections[connection.connection_id] = connection

    def detach(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    def resolve(self, connection_id: str) -> Optional[SignalingConnection]:
        return self._connections.get(connection_id)

    def clear(self) -> None:
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)
