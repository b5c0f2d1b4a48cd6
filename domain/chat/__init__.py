"""Chat domain exports."""
from .entity import ChatMessage, MessageKind
from .repository import ChatMessageRepository
from .policy import can_access_trip, can_retract

__all__ = [
    "ChatMessage",
    "MessageKind",
    "ChatMessageRepository",
    "can_access_trip",
    "can_retract",
]
