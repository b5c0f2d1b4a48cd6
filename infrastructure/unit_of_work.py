"""SQLAlchemy 实现的 Unit of Work：每个 HTTP 请求或实时事件各开一个"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.chat_message_repository import SQLAlchemyChatMessageRepository
from infrastructure.repositories.trip_repository import SQLAlchemyTripRepository
from infrastructure.repositories.user_repository import SQLAlchemyUserRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        session = self._session_factory()
        self.session = session
        self.user_repository = SQLAlchemyUserRepository(session)
        self.trip_repository = SQLAlchemyTripRepository(session)
        self.chat_message_repository = SQLAlchemyChatMessageRepository(session)
        if not self.readonly:
            await session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self.session is not None:
                await self.session.close()
            self.session = None
            self.user_repository = self.trip_repository = self.chat_message_repository = None

    async def commit(self) -> None:
        if not self.readonly and self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._done = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._done = True
