"""Infrastructure models package exports."""
from .base import Base, metadata
from .user import UserModel
from .trip import TripModel, trip_participants
from .chat_message import ChatMessageModel

__all__ = [
    "Base",
    "metadata",
    "UserModel",
    "TripModel",
    "trip_participants",
    "ChatMessageModel",
]
