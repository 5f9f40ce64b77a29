"""Data contracts for signaling channel events.

Every websocket frame is a JSON object ``{"event": <name>, "data": <payload>}``.
Payload models allow extra fields so session descriptions and candidates are
forwarded unchanged.
"""
from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class Role(str, enum.Enum):
    PRODUCER = "producer"
    CONSUMER = "browser"


ROLE_ALIASES = {"touchdesigner": Role.PRODUCER}


class MessageKind(str, enum.Enum):
    REGISTER = "register"
    REGISTERED = "registered"
    REQUEST_STREAM = "request-stream"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    PRESENCE_ONLINE = "touchdesigner-online"
    PRESENCE_OFFLINE = "touchdesigner-offline"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class SessionDescription(_Payload):
    sdp: str = Field(..., description="SDP body")
    type: str = Field(default="offer", description="offer or answer")


class RegisterPayload(_Payload):
    type: Role = Field(..., description="Role announced by the connecting peer")

    @field_validator("type", mode="before")
    @classmethod
    def _resolve_alias(cls, value: object) -> object:
        """Accept legacy role names such as ``touchdesigner``."""

        if isinstance(value, str):
            return ROLE_ALIASES.get(value.lower(), value.lower())
        return value


class RegisteredPayload(_Payload):
    id: str
    type: Role


class OfferPayload(_Payload):
    offer: SessionDescription


class AnswerPayload(_Payload):
    answer: SessionDescription


class IceCandidatePayload(_Payload):
    candidate: dict[str, Any] | str | None = None


class PresencePayload(_Payload):
    message: str = ""


class Register(BaseModel):
    event: Literal["register"] = "register"
    data: RegisterPayload


class Registered(BaseModel):
    event: Literal["registered"] = "registered"
    data: RegisteredPayload


class RequestStream(BaseModel):
    event: Literal["request-stream"] = "request-stream"
    data: _Payload = Field(default_factory=_Payload)


class Offer(BaseModel):
    event: Literal["offer"] = "offer"
    data: OfferPayload


class Answer(BaseModel):
    event: Literal["answer"] = "answer"
    data: AnswerPayload


class IceCandidate(BaseModel):
    event: Literal["ice-candidate"] = "ice-candidate"
    data: IceCandidatePayload = Field(default_factory=IceCandidatePayload)


class PresenceOnline(BaseModel):
    event: Literal["touchdesigner-online"] = "touchdesigner-online"
    data: PresencePayload = Field(default_factory=lambda: PresencePayload(message="TouchDesigner is online"))


class PresenceOffline(BaseModel):
    event: Literal["touchdesigner-offline"] = "touchdesigner-offline"
    data: PresencePayload = Field(default_factory=lambda: PresencePayload(message="TouchDesigner disconnected"))


SignalingMessage = Annotated[
    Union[
        Register,
        Registered,
        RequestStream,
        Offer,
        Answer,
        IceCandidate,
        PresenceOnline,
        PresenceOffline,
    ],
    Field(discriminator="event"),
]

_message_adapter: TypeAdapter[SignalingMessage] = TypeAdapter(SignalingMessage)


def parse_message(raw: Any) -> SignalingMessage:
    """Validate a decoded JSON frame into a signaling message.

    Raises ``pydantic.ValidationError`` for unknown events or bad payloads.
    """

    if isinstance(raw, dict) and raw.get("data") is None:
        raw = {**raw, "data": {}}
    return _message_adapter.validate_python(raw)


def to_wire(message: BaseModel) -> dict[str, Any]:
    """Serialise a message for the websocket, keeping forwarded extras."""

    return message.model_dump(mode="json", by_alias=True)
