"""In-memory WebRTC signaling service."""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from ..schemas.signaling import Register, Registered, RegisteredPayload, Role, to_wire
from .connections import ConnectionDirectory, SignalingConnection
from .presence import PresenceNotifier
from .registry import ConnectionRegistry
from .router import SignalingRouter

logger = logging.getLogger(__name__)


class SignalingService:
    """Tie the registry, router and presence notifier to transport events.

    One instance is created per application and torn down on shutdown.
    """

    def __init__(self) -> None:
        self.registry = ConnectionRegistry()
        self.directory = ConnectionDirectory()
        self.router = SignalingRouter(self.registry, self.directory)
        self.presence = PresenceNotifier(self.router)

    async def connect(self, connection: SignalingConnection) -> None:
        """Make a freshly opened transport reachable by id."""

        self.directory.attach(connection)
        logger.info("Client connected: %s", connection.connection_id)

    async def register(self, connection_id: str, role: Role) -> None:
        """Record the role of a connection and announce producers.

        Raises ``DuplicateRegistration`` when the connection already has a role.
        """

        await self.registry.register(connection_id, role)

        connection = self.directory.resolve(connection_id)
        if connection is not None:
            ack = Registered(data=RegisteredPayload(id=connection_id, type=role))
            try:
                await connection.send(to_wire(ack))
            except Exception:  # noqa: BLE001 - transport may already be closing
                logger.warning("Could not acknowledge registration of %s", connection_id)

        if role is Role.PRODUCER:
            await self.presence.producer_registered(connection_id)

    async def handle(self, connection_id: str, message: BaseModel) -> int:
        """Dispatch an inbound message from ``connection_id``."""

        if isinstance(message, Register):
            await self.register(connection_id, message.data.type)
            return 0
        return await self.router.route(connection_id, message)

    async def disconnect(self, connection_id: str) -> Optional[Role]:
        """Forget a closed transport and announce a departing producer."""

        self.directory.detach(connection_id)
        role = await self.registry.unregister(connection_id)
        if role is Role.PRODUCER:
            await self.presence.producer_unregistered(connection_id)
        logger.info("Client disconnected: %s", connection_id)
        return role

    async def close(self) -> None:
        """Drop every connection without notifying anyone."""

        await self.registry.clear()
        self.directory.clear()
