"""
Realtime client event DTOs (Pydantic v2).

Client frames are a discriminated union on ``type``; a frame is
validated before it reaches any authorization check.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


class InvalidEventException(BusinessException):
    """Malformed or unknown client frame."""

    def __init__(self, message: str, *, event: Optional[str] = None, details: Optional[dict] = None):
        self.event = event
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
        )


class _ClientEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinRoomEvent(_ClientEvent):
    type: Literal["join-room"]
    trip_id: int = Field(..., alias="tripId")


class LeaveRoomEvent(_ClientEvent):
    type: Literal["leave-room"]
    trip_id: int = Field(..., alias="tripId")


class SendTextEvent(_ClientEvent):
    type: Literal["send-text"]
    trip_id: int = Field(..., alias="tripId")
    # 空白内容交给领域实体校验，以便返回明确的校验错误
    body: Optional[str] = None


class SendVoiceEvent(_ClientEvent):
    type: Literal["send-voice"]
    trip_id: int = Field(..., alias="tripId")
    voice_payload: Optional[str] = Field(None, alias="voicePayload")


class UnsendEvent(_ClientEvent):
    type: Literal["unsend"]
    trip_id: int = Field(..., alias="tripId")
    message_id: int = Field(..., alias="messageId")


class PingEvent(_ClientEvent):
    type: Literal["ping"]


class PongEvent(_ClientEvent):
    type: Literal["pong"]


ClientEvent = Annotated[
    Union[
        JoinRoomEvent,
        LeaveRoomEvent,
        SendTextEvent,
        SendVoiceEvent,
        UnsendEvent,
        PingEvent,
        PongEvent,
    ],
    Field(discriminator="type"),
]

_client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)

EVENT_TYPES = frozenset(
    {"join-room", "leave-room", "send-text", "send-voice", "unsend", "ping", "pong"}
)


def parse_client_event(raw: Any) -> ClientEvent:
    """Validate a decoded JSON frame into a typed event."""
    if not isinstance(raw, dict):
        raise InvalidEventException("Event must be a JSON object")
    event_type = raw.get("type")
    if event_type not in EVENT_TYPES:
        raise InvalidEventException(
            "Unknown event type",
            event=str(event_type) if event_type is not None else None,
            details={"allowed": sorted(EVENT_TYPES)},
        )
    try:
        return _client_event_adapter.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(loc) for loc in first.get("loc", ())[1:])
        raise InvalidEventException(
            f"Invalid {event_type} payload: {first.get('msg', 'unknown')}",
            event=event_type,
            details={"field": field} if field else None,
        ) from exc


def event_trip_id(raw: Any) -> Optional[int]:
    """Best-effort tripId of a raw frame, used to scope error replies."""
    if isinstance(raw, dict):
        value = raw.get("tripId")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None
