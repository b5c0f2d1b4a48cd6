"""Repository abstraction for the chat message log."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .entity import ChatMessage


class ChatMessageRepository(ABC):
    """Append-only store of chat messages keyed by trip."""

    @abstractmethod
    async def create(self, message: ChatMessage) -> ChatMessage:
        """Persist a new message; the store assigns ``id`` and ``created_at``."""
        ...

    @abstractmethod
    async def get_by_id(self, message_id: int) -> Optional[ChatMessage]:
        ...

    @abstractmethod
    async def list_recent_by_trip(self, trip_id: int, *, limit: int) -> list[ChatMessage]:
        """Return the ``limit`` most recent messages, oldest first."""
        ...

    @abstractmethod
    async def delete(self, message_id: int) -> bool:
        """Delete if present. Returns False when nothing was deleted."""
        ...
