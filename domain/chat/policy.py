"""Authorization rules shared by the HTTP and realtime paths."""
from __future__ import annotations

from typing import Optional

from domain.chat.entity import ChatMessage
from domain.trip.entity import Trip


def can_access_trip(trip: Optional[Trip], user_id: int) -> bool:
    """True when ``user_id`` created the trip or is listed as a participant."""
    if trip is None:
        return False
    return trip.is_creator(user_id) or trip.is_participant(user_id)


def can_retract(user_id: int, message: ChatMessage) -> bool:
    """Only the sender of a message may retract it."""
    return message.is_sent_by(user_id)
