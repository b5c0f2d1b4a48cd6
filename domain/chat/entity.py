"""Chat message aggregate."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class MessageKind(str, Enum):
    TEXT = "text"
    VOICE = "voice"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class ChatMessage:
    """An entry in a trip's chat log.

    Messages are append-only: once persisted they are never edited, only
    hard-deleted by their sender. ``sender_id`` always comes from the
    authenticated identity.
    """

    id: Optional[int]
    trip_id: int
    sender_id: int
    kind: MessageKind
    body: str = ""
    voice_payload: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.kind = MessageKind(self.kind)
        self.created_at = _ensure_utc(self.created_at)

    @classmethod
    def text(
        cls,
        *,
        trip_id: int,
        sender_id: int,
        body: Optional[str],
        max_length: Optional[int] = None,
    ) -> "ChatMessage":
        """Build a text message; the body is stored trimmed."""
        trimmed = (body or "").strip()
        if not trimmed:
            raise DomainValidationException(
                "Message body cannot be empty",
                field="body",
            )
        if max_length is not None and len(trimmed) > max_length:
            raise DomainValidationException(
                f"Message body exceeds {max_length} characters",
                field="body",
                details={"max_length": max_length},
            )
        return cls(
            id=None,
            trip_id=trip_id,
            sender_id=sender_id,
            kind=MessageKind.TEXT,
            body=trimmed,
        )

    @classmethod
    def voice(
        cls,
        *,
        trip_id: int,
        sender_id: int,
        voice_payload: Optional[str],
        max_bytes: Optional[int] = None,
    ) -> "ChatMessage":
        """Build a voice message around an opaque payload (data URI or URL)."""
        if not voice_payload or not voice_payload.strip():
            raise DomainValidationException(
                "Voice payload is required",
                field="voicePayload",
            )
        if max_bytes is not None and len(voice_payload.encode("utf-8")) > max_bytes:
            raise DomainValidationException(
                "Voice payload is too large",
                field="voicePayload",
                details={"max_bytes": max_bytes},
            )
        return cls(
            id=None,
            trip_id=trip_id,
            sender_id=sender_id,
            kind=MessageKind.VOICE,
            body="",
            voice_payload=voice_payload,
        )

    def belongs_to_trip(self, trip_id: int) -> bool:
        return self.trip_id == trip_id

    def is_sent_by(self, user_id: int) -> bool:
        return self.sender_id == user_id
