"""
Realtime contracts shared by the session manager and the brokers.

Every server-to-client frame is an :class:`Envelope`. Room-scoped frames
(``message-created``/``message-deleted``) travel through a
:class:`RealtimeBrokerPort` so that each process can deliver them to its
own room members; caller-local frames (acks, errors, pong) never do.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel, Field

from core.response import to_utc_iso


ROOM_PREFIX = "trip_"


def trip_room(trip_id: int) -> str:
    """Room key for a trip's chat channel."""
    return f"{ROOM_PREFIX}{trip_id}"


class Envelope(BaseModel):
    """WS frame: ``{type, room, data, ts}``; ``ts`` is server UTC with ``Z``."""

    type: str
    room: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    ts: str = Field(default_factory=lambda: to_utc_iso(datetime.now(timezone.utc)))


Handler = Callable[[Envelope], Awaitable[None]]


class RealtimeBrokerPort(Protocol):
    """Cross-process room fan-out.

    ``publish`` must preserve call order per room; ``subscribe`` registers
    the callback that delivers an envelope to local members of
    ``envelope.room``.
    """

    async def publish(self, room: str, envelope: Envelope) -> None: ...

    async def subscribe(self, handler: Handler) -> None: ...

    async def aclose(self) -> None: ...


__all__ = ["Envelope", "Handler", "RealtimeBrokerPort", "ROOM_PREFIX", "trip_room"]
