"""Signaling client for a stream consumer."""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Callable, Optional, Sequence

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from ..core.config import settings
from ..schemas.signaling import (
    IceCandidate,
    Offer,
    PresenceOffline,
    PresenceOnline,
    Register,
    Registered,
    RegisterPayload,
    Role,
    parse_message,
    to_wire,
)
from .negotiation import (
    NegotiationSession,
    NegotiationState,
    PeerConnectionFactory,
    RemoteMedia,
    StatusCallback,
    StatusLevel,
    StatusUpdate,
)

logger = logging.getLogger(__name__)


class ConsumerClient:
    """Handle the lifespan of one consumer's signaling connection.

    At most one :class:`NegotiationSession` is active at a time.
    """

    def __init__(
        self,
        ws: Any,
        *,
        on_status: StatusCallback | None = None,
        ice_servers: Sequence[str] | None = None,
        pc_factory: PeerConnectionFactory | None = None,
        media_factory: Callable[[], RemoteMedia] | None = None,
        auto_connect: bool = False,
    ) -> None:
        self._ws = ws
        self._on_status = on_status
        self._ice_servers = list(ice_servers if ice_servers is not None else settings.ice_servers)
        self._pc_factory = pc_factory
        self._media_factory = media_factory or RemoteMedia
        self._auto_connect = auto_connect
        self._receive_task: asyncio.Task[None] | None = None
        self.session: Optional[NegotiationSession] = None
        self.connection_id: Optional[str] = None
        self.producer_online = False

    @property
    def state(self) -> NegotiationState:
        return self.session.state if self.session is not None else NegotiationState.IDLE

    async def __aenter__(self) -> "ConsumerClient":
        logger.info("Connected to signaling server")
        await self.send(to_wire(Register(data=RegisterPayload(type=Role.CONSUMER))))
        self._publish("Connected to server", StatusLevel.ONLINE)
        self._receive_task = asyncio.create_task(self._receive_loop())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._receive_task:
            self._receive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._receive_task
        if self.session is not None:
            await self.session.disconnect()
        await self._ws.close()

    async def send(self, message: dict) -> None:
        await self._ws.send(json.dumps(message))

    async def wait_closed(self) -> None:
        """Block until the relay closes the signaling connection."""

        if self._receive_task:
            with suppress(asyncio.CancelledError):
                await self._receive_task

    async def connect_to_stream(self) -> NegotiationSession:
        """Start a fresh negotiation, tearing down any previous one first."""

        if self.session is not None:
            await self.session.disconnect()
        session = NegotiationSession(
            self.send,
            on_status=self._on_status,
            ice_servers=self._ice_servers,
            pc_factory=self._pc_factory,
            media=self._media_factory(),
        )
        self.session = session
        await session.start()
        return session

    async def disconnect_from_stream(self) -> None:
        if self.session is not None:
            await self.session.disconnect()

    async def dispatch(self, frame: Any) -> None:
        """React to one decoded frame from the relay."""

        try:
            message = parse_message(frame)
        except ValidationError as exc:
            logger.warning("Ignoring unexpected frame: %s", exc.errors()[:1])
            return

        if isinstance(message, Registered):
            self.connection_id = message.data.id
            logger.info("Registered with relay as %s", message.data.id)
        elif isinstance(message, PresenceOnline):
            logger.info("TouchDesigner is online")
            self.producer_online = True
            self._publish("TouchDesigner online - Ready to connect", StatusLevel.ONLINE)
            if self._auto_connect and (self.session is None or not self.session.active):
                await self.connect_to_stream()
        elif isinstance(message, PresenceOffline):
            logger.info("TouchDesigner went offline")
            self.producer_online = False
            self._publish("TouchDesigner offline", StatusLevel.OFFLINE)
            if self.session is not None:
                await self.session.handle_presence_offline()
        elif isinstance(message, Offer):
            if self.session is None:
                logger.warning("No peer connection available for offer")
                return
            await self.session.handle_offer(message.data.offer)
        elif isinstance(message, IceCandidate):
            if self.session is None:
                logger.warning("No peer connection available for ICE candidate")
                return
            await self.session.handle_remote_candidate(message.data.candidate)
        else:
            logger.debug("Ignoring %s from relay", message.event)

    async def _receive_loop(self) -> None:
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    continue
                try:
                    frame = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON frame from relay")
                    continue
                try:
                    await self.dispatch(frame)
                except Exception:  # noqa: BLE001 - one bad frame never ends the client
                    logger.exception("Error handling relay frame")
        except asyncio.CancelledError:
            raise
        except ConnectionClosed:
            pass
        logger.info("Disconnected from signaling server")
        self._publish("Disconnected from server", StatusLevel.OFFLINE)

    def _publish(self, message: str, level: StatusLevel) -> None:
        if self._on_status is not None:
            self._on_status(StatusUpdate(state=self.state, message=message, level=level))


@asynccontextmanager
async def connect_consumer(
    url: str | None = None,
    *,
    on_status: StatusCallback | None = None,
    ice_servers: Sequence[str] | None = None,
    pc_factory: PeerConnectionFactory | None = None,
    media_factory: Callable[[], RemoteMedia] | None = None,
    auto_connect: bool = False,
) -> AsyncIterator[ConsumerClient]:
    """Open a consumer connection to the relay and register as a browser."""

    url = url or settings.signaling_url
    async with websockets.connect(url) as ws:
        client = ConsumerClient(
            ws,
            on_status=on_status,
            ice_servers=ice_servers,
            pc_factory=pc_factory,
            media_factory=media_factory,
            auto_connect=auto_connect,
        )
        async with client:
            yield client
