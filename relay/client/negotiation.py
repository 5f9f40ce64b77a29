"""Consumer-side WebRTC negotiation state machine.

A :class:`NegotiationSession` owns one local ``RTCPeerConnection`` for the
lifetime of a single attempt to watch the producer's stream. It requests the
stream, answers the producer's offer, trades ICE candidates through the relay
and tracks the peer connection until the user or the relay tears it down.

Every externally visible change is published through one status callback; the
UI is expected to render :class:`StatusUpdate` objects and nothing else.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from aiortc import RTCConfiguration, RTCIceCandidate, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.contrib.media import MediaBlackhole
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from ..schemas.signaling import (
    Answer,
    AnswerPayload,
    IceCandidate,
    IceCandidatePayload,
    RequestStream,
    SessionDescription,
    to_wire,
)

logger = logging.getLogger(__name__)

SendCallable = Callable[[dict], Awaitable[None]]


class NegotiationState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    OFFER_RECEIVED = "offer-received"
    ANSWERING = "answering"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


ACTIVE_STATES = frozenset(
    {
        NegotiationState.REQUESTING,
        NegotiationState.OFFER_RECEIVED,
        NegotiationState.ANSWERING,
        NegotiationState.NEGOTIATING,
        NegotiationState.CONNECTED,
        NegotiationState.FAILED,
    }
)

# Local candidates produced before the answer is sent wait in the buffer.
_BUFFERING_STATES = frozenset(
    {NegotiationState.REQUESTING, NegotiationState.OFFER_RECEIVED, NegotiationState.ANSWERING}
)


class StatusLevel(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    CONNECTING = "connecting"


@dataclass(slots=True, frozen=True)
class StatusUpdate:
    state: NegotiationState
    message: str
    level: StatusLevel

    @property
    def can_connect(self) -> bool:
        return self.state not in ACTIVE_STATES

    @property
    def can_disconnect(self) -> bool:
        return self.state in ACTIVE_STATES


StatusCallback = Callable[[StatusUpdate], None]
PeerConnectionFactory = Callable[[], Any]
MediaSinkFactory = Callable[[], Any]


def build_peer_connection(ice_servers: Sequence[str]) -> RTCPeerConnection:
    servers = [RTCIceServer(urls=url) for url in ice_servers]
    return RTCPeerConnection(RTCConfiguration(iceServers=servers))


def candidate_to_wire(candidate: RTCIceCandidate) -> dict[str, Any]:
    """Render an aiortc candidate the way browsers serialise ``RTCIceCandidate``."""

    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidate_from_wire(payload: dict[str, Any] | str | None) -> Optional[RTCIceCandidate]:
    """Parse a relayed candidate; ``None`` for an empty end-of-candidates marker.

    Raises ``ValueError`` when the candidate line cannot be parsed.
    """

    sdp_mid: Optional[str] = None
    sdp_mline_index: Optional[int] = None
    if isinstance(payload, dict):
        text = payload.get("candidate")
        sdp_mid = payload.get("sdpMid")
        sdp_mline_index = payload.get("sdpMLineIndex")
    else:
        text = payload
    if not text:
        return None
    if not isinstance(text, str):
        raise ValueError(f"ICE candidate must be a string, got {type(text).__name__}")
    if text.startswith("candidate:"):
        text = text[len("candidate:"):]
    try:
        candidate = candidate_from_sdp(text)
    except (AssertionError, IndexError, ValueError) as exc:
        raise ValueError(f"malformed ICE candidate {text!r}") from exc
    candidate.sdpMid = sdp_mid
    candidate.sdpMLineIndex = sdp_mline_index
    return candidate


class RemoteMedia:
    """Attachment point for tracks received from the producer."""

    def __init__(self, sink_factory: MediaSinkFactory | None = None) -> None:
        self._sink_factory = sink_factory or MediaBlackhole
        self._sink: Any = None
        self._started = False
        self.tracks: list[Any] = []

    @property
    def attached(self) -> bool:
        return bool(self.tracks)

    def attach(self, track: Any) -> None:
        if self._sink is None:
            self._sink = self._sink_factory()
        self._sink.addTrack(track)
        self.tracks.append(track)

    async def start(self) -> None:
        if self._sink is not None and not self._started:
            await self._sink.start()
            self._started = True

    async def clear(self) -> None:
        sink, self._sink = self._sink, None
        self.tracks.clear()
        if sink is not None and self._started:
            await sink.stop()
        self._started = False


class NegotiationSession:
    """Drive one offer/answer/ICE exchange for a consumer."""

    def __init__(
        self,
        send: SendCallable,
        *,
        on_status: StatusCallback | None = None,
        ice_servers: Sequence[str] = (),
        pc_factory: PeerConnectionFactory | None = None,
        media: RemoteMedia | None = None,
    ) -> None:
        self._send = send
        self._on_status = on_status
        self._pc_factory = pc_factory or (lambda: build_peer_connection(ice_servers))
        self.media = media or RemoteMedia()
        self._pc: Any = None
        self._state = NegotiationState.IDLE
        self.pending_candidates: list[RTCIceCandidate] = []

    @property
    def state(self) -> NegotiationState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def peer_connection(self) -> Any:
        return self._pc

    async def start(self) -> None:
        """Create the peer connection and ask the producer for its stream."""

        if self._state is not NegotiationState.IDLE:
            raise RuntimeError(f"session already started ({self._state.value})")

        logger.info("Attempting to connect to stream")
        try:
            pc = self._pc_factory()
        except Exception as exc:  # noqa: BLE001 - surfaced as a status line
            logger.exception("Error creating peer connection: %s", exc)
            self._state = NegotiationState.DISCONNECTED
            self._publish("Connection failed", StatusLevel.OFFLINE)
            return

        self._pc = pc
        pc.on("track", self._on_track)
        pc.on("icecandidate", self._on_local_candidate)
        pc.on("connectionstatechange", self._on_connection_state_change)

        self._transition(NegotiationState.REQUESTING, "Connecting to stream...", StatusLevel.CONNECTING)
        try:
            await self._send(to_wire(RequestStream()))
        except Exception as exc:  # noqa: BLE001 - relay channel is gone
            logger.warning("Could not request stream: %s", exc)
            await self.disconnect()

    async def handle_offer(self, offer: dict[str, Any] | SessionDescription) -> None:
        """Answer a relayed offer from the producer."""

        pc = self._pc
        if pc is None:
            logger.warning("No peer connection available for offer")
            return
        if self._state is not NegotiationState.REQUESTING:
            logger.info("Ignoring offer while %s", self._state.value)
            return

        if isinstance(offer, SessionDescription):
            offer = offer.model_dump()
        logger.info("Received offer from TouchDesigner")
        try:
            await pc.setRemoteDescription(
                RTCSessionDescription(sdp=offer["sdp"], type=offer.get("type") or "offer")
            )
        except Exception as exc:  # noqa: BLE001 - negotiation errors never crash the session
            self._negotiation_error("Error handling offer", exc)
            return
        if self._pc is not pc:
            return
        self._transition(NegotiationState.OFFER_RECEIVED, "Offer received", StatusLevel.CONNECTING)

        self._transition(NegotiationState.ANSWERING, "Answering offer...", StatusLevel.CONNECTING)
        try:
            answer = await pc.createAnswer()
            await pc.setLocalDescription(answer)
        except Exception as exc:  # noqa: BLE001
            self._negotiation_error("Error handling offer", exc, terminal=True)
            return
        if self._pc is not pc:
            return

        local = pc.localDescription or answer
        message = Answer(data=AnswerPayload(answer=SessionDescription(sdp=local.sdp, type=local.type)))
        try:
            await self._send(to_wire(message))
        except Exception as exc:  # noqa: BLE001
            self._negotiation_error("Error sending answer", exc, terminal=True)
            return
        await self.media.start()
        self._transition(NegotiationState.NEGOTIATING, "Sent answer to TouchDesigner", StatusLevel.CONNECTING)
        await self._flush_candidates()

    async def handle_remote_candidate(self, payload: dict[str, Any] | str | None) -> None:
        """Hand a relayed candidate to the peer connection.

        Candidates that arrive before the remote description, or that the peer
        connection rejects for any other reason, are dropped.
        """

        pc = self._pc
        if pc is None:
            logger.warning("No peer connection available for ICE candidate")
            return
        try:
            candidate = candidate_from_wire(payload)
        except ValueError as exc:
            logger.warning("Error adding ICE candidate: %s", exc)
            return
        if candidate is None:
            return
        try:
            await pc.addIceCandidate(candidate)
        except Exception as exc:  # noqa: BLE001 - early candidates are dropped, never retried
            logger.warning("Error adding ICE candidate: %s", exc)
            return
        logger.debug("Added ICE candidate")

    async def handle_presence_offline(self) -> None:
        """Tear the stream down because the producer left the relay."""

        if self.active:
            await self.disconnect()

    async def disconnect(self) -> None:
        """Release the peer connection and detach remote media.

        Calling this again once disconnected does nothing.
        """

        if self._state is NegotiationState.DISCONNECTED:
            return
        self._state = NegotiationState.DISCONNECTED
        pc, self._pc = self._pc, None
        self.pending_candidates.clear()
        if pc is not None:
            try:
                await pc.close()
            except Exception:  # noqa: BLE001 - closing is best-effort
                logger.exception("Error closing peer connection")
        await self.media.clear()
        logger.info("Disconnected from stream")
        self._publish("Disconnected", StatusLevel.OFFLINE)

    def _on_track(self, track: Any) -> None:
        if self._pc is None:
            return
        logger.info("Received remote %s track", getattr(track, "kind", "media"))
        self.media.attach(track)
        self._publish("Stream connected!", StatusLevel.ONLINE)

    async def _on_local_candidate(self, candidate: Optional[RTCIceCandidate]) -> None:
        if candidate is None or self._pc is None or self._state is NegotiationState.FAILED:
            return
        if self._state in _BUFFERING_STATES:
            self.pending_candidates.append(candidate)
            return
        await self._send_candidate(candidate)

    async def _flush_candidates(self) -> None:
        pending, self.pending_candidates = self.pending_candidates, []
        for candidate in pending:
            await self._send_candidate(candidate)

    async def _send_candidate(self, candidate: RTCIceCandidate) -> None:
        message = IceCandidate(data=IceCandidatePayload(candidate=candidate_to_wire(candidate)))
        try:
            await self._send(to_wire(message))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not send ICE candidate: %s", exc)
            return
        logger.debug("Sent ICE candidate")

    async def _on_connection_state_change(self) -> None:
        pc = self._pc
        if pc is None:
            return
        state = pc.connectionState
        logger.info("Connection state: %s", state)
        if state == "connected" and self._state is NegotiationState.NEGOTIATING:
            self._transition(NegotiationState.CONNECTED, "Stream active", StatusLevel.ONLINE)
        elif state in ("disconnected", "failed") and self._state in (
            NegotiationState.NEGOTIATING,
            NegotiationState.CONNECTED,
        ):
            self._transition(NegotiationState.FAILED, "Stream disconnected", StatusLevel.OFFLINE)

    def _negotiation_error(self, context: str, exc: BaseException, *, terminal: bool = False) -> None:
        logger.warning("%s: %s", context, exc)
        if terminal:
            # No answer went out, so the producer will never complete this attempt.
            self.pending_candidates.clear()
            self._transition(NegotiationState.FAILED, f"{context}: {exc}", StatusLevel.OFFLINE)
            return
        self._publish(f"{context}: {exc}", StatusLevel.OFFLINE)

    def _transition(self, state: NegotiationState, message: str, level: StatusLevel) -> None:
        logger.debug("Negotiation %s -> %s", self._state.value, state.value)
        self._state = state
        self._publish(message, level)

    def _publish(self, message: str, level: StatusLevel) -> None:
        if self._on_status is not None:
            self._on_status(StatusUpdate(state=self._state, message=message, level=level))
