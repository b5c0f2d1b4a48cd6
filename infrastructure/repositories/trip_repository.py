"""SQLAlchemy-backed repository for trips and their participants."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.trip import Trip, TripRepository
from infrastructure.models.trip import TripModel, trip_participants


class SQLAlchemyTripRepository(TripRepository):
    """Load trip membership using SQLAlchemy Core/ORM."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _participant_ids(self, trip_id: int) -> list[int]:
        result = await self.session.execute(
            select(trip_participants.c.user_id)
            .where(trip_participants.c.trip_id == trip_id)
            .order_by(trip_participants.c.user_id)
        )
        return [row[0] for row in result.all()]

    async def get_by_id(self, trip_id: int) -> Optional[Trip]:
        model = await self.session.get(TripModel, trip_id)
        if model is None:
            return None
        return Trip(
            id=model.id,
            title=model.title,
            created_by=model.created_by,
            participants=await self._participant_ids(model.id),
        )

    async def create(self, trip: Trip) -> Trip:
        model = TripModel(title=trip.title, created_by=trip.created_by)
        self.session.add(model)
        await self.session.flush()
        if trip.participants:
            await self.session.execute(
                insert(trip_participants),
                [{"trip_id": model.id, "user_id": uid} for uid in trip.participants],
            )
        return Trip(
            id=model.id,
            title=model.title,
            created_by=model.created_by,
            participants=list(trip.participants),
        )
