"""Trip snapshot consumed by the chat core (membership only)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Trip:
    """A trip owned by an external planning service.

    The chat core never mutates trips; it only asks who belongs to one.
    """

    id: Optional[int]
    title: str
    created_by: int
    participants: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        # 去重且保持顺序
        self.participants = list(dict.fromkeys(self.participants or []))

    def is_creator(self, user_id: int) -> bool:
        return self.created_by == user_id

    def is_participant(self, user_id: int) -> bool:
        return user_id in self.participants
