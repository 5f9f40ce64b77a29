"""Directional fan-out of signaling messages between roles."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Tuple

from pydantic import BaseModel

from ..schemas.signaling import MessageKind, Role, to_wire
from .connections import ConnectionDirectory
from .registry import ConnectionNotFound, ConnectionRegistry

logger = logging.getLogger(__name__)

# (message kind, sender role) -> destination role
ROUTES: Dict[Tuple[MessageKind, Role], Role] = {
    (MessageKind.OFFER, Role.PRODUCER): Role.CONSUMER,
    (MessageKind.ANSWER, Role.CONSUMER): Role.PRODUCER,
    (MessageKind.ICE_CANDIDATE, Role.PRODUCER): Role.CONSUMER,
    (MessageKind.ICE_CANDIDATE, Role.CONSUMER): Role.PRODUCER,
    (MessageKind.REQUEST_STREAM, Role.CONSUMER): Role.PRODUCER,
}


def destination_for(kind: MessageKind, sender_role: Role) -> Optional[Role]:
    """Return the role a message of ``kind`` from ``sender_role`` is routed to."""

    return ROUTES.get((kind, sender_role))


class SignalingRouter:
    """Deliver signaling messages to every connection of the opposite role."""

    def __init__(self, registry: ConnectionRegistry, directory: ConnectionDirectory) -> None:
        self._registry = registry
        self._directory = directory

    async def route(self, sender_id: str, message: BaseModel) -> int:
        """Forward ``message`` from ``sender_id`` and return the delivery count."""

        kind = MessageKind(message.event)
        try:
            sender_role = await self._registry.role_of(sender_id)
        except ConnectionNotFound:
            logger.warning("Dropping %s from unregistered connection %s", kind.value, sender_id)
            return 0

        destination = destination_for(kind, sender_role)
        if destination is None:
            logger.warning("Dropping %s: not routable from %s %s", kind.value, sender_role.value, sender_id)
            return 0

        delivered = await self.broadcast(destination, message, exclude=sender_id)
        logger.info("Routed %s from %s to %d %s connection(s)", kind.value, sender_id, delivered, destination.value)
        return delivered

    async def broadcast(self, role: Role, message: BaseModel, exclude: str | None = None) -> int:
        """Send ``message`` to a snapshot of every connection holding ``role``."""

        recipients = await self._registry.connections_with_role(role)
        connections = []
        for connection_id in recipients:
            if connection_id == exclude:
                continue
            connection = self._directory.resolve(connection_id)
            if connection is None:
                continue
            connections.append(connection)

        if not connections:
            logger.debug("No %s connections for %s", role.value, message.event)
            return 0

        payload = to_wire(message)
        results = await asyncio.gather(
            *(connection.send(payload) for connection in connections),
            return_exceptions=True,
        )
        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to deliver %s to %s: %r", message.event, connection.connection_id, result
                )
                continue
            delivered += 1
        return delivered
