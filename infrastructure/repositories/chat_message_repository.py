"""SQLAlchemy-backed chat message store."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.chat import ChatMessage, ChatMessageRepository, MessageKind
from infrastructure.models.chat_message import ChatMessageModel


class SQLAlchemyChatMessageRepository(ChatMessageRepository):
    """Persist chat messages; ordering within a trip is (created_at, id)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ChatMessageModel) -> ChatMessage:
        return ChatMessage(
            id=model.id,
            trip_id=model.trip_id,
            sender_id=model.sender_id,
            kind=MessageKind(model.kind),
            body=model.body or "",
            voice_payload=model.voice_payload,
            created_at=model.created_at,
        )

    async def create(self, message: ChatMessage) -> ChatMessage:
        model = ChatMessageModel(
            trip_id=message.trip_id,
            sender_id=message.sender_id,
            kind=message.kind.value,
            body=message.body,
            voice_payload=message.voice_payload,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return self._to_entity(model)

    async def get_by_id(self, message_id: int) -> Optional[ChatMessage]:
        model = await self.session.get(ChatMessageModel, message_id)
        return self._to_entity(model) if model else None

    async def list_recent_by_trip(self, trip_id: int, *, limit: int) -> list[ChatMessage]:
        # 先倒序取最近 limit 条，再翻转为时间正序
        result = await self.session.execute(
            select(ChatMessageModel)
            .where(ChatMessageModel.trip_id == trip_id)
            .order_by(ChatMessageModel.created_at.desc(), ChatMessageModel.id.desc())
            .limit(limit)
        )
        models = list(result.scalars().all())
        models.reverse()
        return [self._to_entity(m) for m in models]

    async def delete(self, message_id: int) -> bool:
        result = await self.session.execute(
            delete(ChatMessageModel).where(ChatMessageModel.id == message_id)
        )
        return (result.rowcount or 0) > 0
