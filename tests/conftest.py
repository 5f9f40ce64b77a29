"""Shared test doubles for the relay and consumer tests."""
from __future__ import annotations

import inspect
from typing import Any

import pytest
from aiortc import RTCSessionDescription


class FakePeerConnection:
    """Stand-in for ``RTCPeerConnection`` that records negotiation calls."""

    def __init__(self) -> None:
        self.handlers: dict[str, Any] = {}
        self.connectionState = "new"
        self.remoteDescription: RTCSessionDescription | None = None
        self.localDescription: RTCSessionDescription | None = None
        self.added_candidates: list[Any] = []
        self.close_calls = 0
        self.fail_remote = False
        self.fail_answer = False

    def on(self, event: str, handler: Any) -> Any:
        self.handlers[event] = handler
        return handler

    async def emit(self, event: str, *args: Any) -> None:
        result = self.handlers[event](*args)
        if inspect.isawaitable(result):
            await result

    async def setRemoteDescription(self, description: RTCSessionDescription) -> None:
        if self.fail_remote:
            raise ValueError("Invalid SDP")
        self.remoteDescription = description

    async def createAnswer(self) -> RTCSessionDescription:
        if self.fail_answer:
            raise RuntimeError("No codecs in common")
        return RTCSessionDescription(sdp="answer-sdp", type="answer")

    async def setLocalDescription(self, description: RTCSessionDescription) -> None:
        self.localDescription = description

    async def addIceCandidate(self, candidate: Any) -> None:
        if self.remoteDescription is None:
            raise RuntimeError("Cannot add ICE candidate before remote description")
        self.added_candidates.append(candidate)

    async def close(self) -> None:
        self.close_calls += 1
        self.connectionState = "closed"

    async def set_connection_state(self, state: str) -> None:
        self.connectionState = state
        await self.emit("connectionstatechange")


class PeerConnectionRecorder:
    def __init__(self) -> None:
        self.created: list[FakePeerConnection] = []

    def __call__(self) -> FakePeerConnection:
        pc = FakePeerConnection()
        self.created.append(pc)
        return pc

    @property
    def last(self) -> FakePeerConnection:
        return self.created[-1]


class DummySink:
    """Media sink with the ``MediaBlackhole`` surface."""

    def __init__(self) -> None:
        self.tracks: list[Any] = []
        self.started = False
        self.stopped = False

    def addTrack(self, track: Any) -> None:
        self.tracks.append(track)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True


class Outbox:
    """Collects frames a client hands to the relay."""

    def __init__(self) -> None:
        self.messages: list[dict] = []

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def events(self) -> list[str]:
        return [message["event"] for message in self.messages]


@pytest.fixture
def pc_factory() -> PeerConnectionRecorder:
    return PeerConnectionRecorder()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def statuses() -> list:
    return []


@pytest.fixture
def sink() -> DummySink:
    return DummySink()
