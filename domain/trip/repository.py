"""Repository abstraction for trips (read side used by chat)."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .entity import Trip


class TripRepository(ABC):
    """Contract for loading trips with their participant ids."""

    @abstractmethod
    async def get_by_id(self, trip_id: int) -> Optional[Trip]:
        ...

    @abstractmethod
    async def create(self, trip: Trip) -> Trip:
        """Only used by seeding scripts and tests."""
        ...
