"""
Unit of Work 抽象

一次聊天操作（成员校验 + 写入/删除）共享一个事务；只读操作不提交。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from domain.chat.repository import ChatMessageRepository
from domain.trip.repository import TripRepository
from domain.user.repository import UserRepository


class AbstractUnitOfWork(ABC):
    user_repository: Optional[UserRepository] = None
    trip_repository: Optional[TripRepository] = None
    chat_message_repository: Optional[ChatMessageRepository] = None

    def __init__(self, *, readonly: bool = False) -> None:
        self.readonly = readonly
        self._done = False

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            await self.rollback()
        elif not self._done and not self.readonly:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...
