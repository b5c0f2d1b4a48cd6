"""
聊天应用服务 - 编排成员校验、消息持久化与撤回

HTTP 路由与实时会话共用本服务，因此两条路径的鉴权规则与错误完全一致。
"""
from typing import Callable, Optional

from domain.chat.entity import ChatMessage
from domain.chat.policy import can_access_trip, can_retract
from domain.common.exceptions import (
    ChatMessageNotFoundException,
    MessageOwnershipException,
    TripAccessDeniedException,
    TripNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.trip.entity import Trip
from domain.user.entity import User
from application.dto import ChatMessageDTO
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class ChatApplicationService:
    """聊天应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        history_limit: Optional[int] = None,
        text_max_length: Optional[int] = None,
        voice_max_bytes: Optional[int] = None,
    ):
        self._uow_factory = uow_factory
        self._history_limit = history_limit or settings.CHAT_HISTORY_LIMIT
        self._text_max_length = text_max_length or settings.CHAT_TEXT_MAX_LENGTH
        self._voice_max_bytes = voice_max_bytes or settings.CHAT_VOICE_MAX_BYTES

    @staticmethod
    async def _require_access(uow: AbstractUnitOfWork, trip_id: int, user_id: int) -> Trip:
        trip = await uow.trip_repository.get_by_id(trip_id)
        if trip is None:
            raise TripNotFoundException(trip_id)
        if not can_access_trip(trip, user_id):
            raise TripAccessDeniedException(trip_id)
        return trip

    async def ensure_trip_access(self, trip_id: int, user_id: int) -> Trip:
        """成员校验：创建者或参与者，否则抛出 NotFound / AccessDenied"""
        async with self._uow_factory(readonly=True) as uow:
            return await self._require_access(uow, trip_id, user_id)

    async def list_messages(self, trip_id: int, user_id: int) -> list[ChatMessageDTO]:
        """最近 N 条消息（时间正序），附带发送者公开资料"""
        async with self._uow_factory(readonly=True) as uow:
            await self._require_access(uow, trip_id, user_id)
            messages = await uow.chat_message_repository.list_recent_by_trip(
                trip_id, limit=self._history_limit
            )
            senders = await uow.user_repository.get_by_ids({m.sender_id for m in messages})
        return [ChatMessageDTO.from_entity(m, senders.get(m.sender_id)) for m in messages]

    async def _append(self, message: ChatMessage, sender: User) -> ChatMessageDTO:
        async with self._uow_factory() as uow:
            await self._require_access(uow, message.trip_id, sender.id)
            saved = await uow.chat_message_repository.create(message)
        logger.info(
            "chat_message_created",
            trip_id=saved.trip_id,
            message_id=saved.id,
            sender_id=saved.sender_id,
            kind=saved.kind.value,
        )
        return ChatMessageDTO.from_entity(saved, sender)

    async def send_text(self, trip_id: int, sender: User, body: Optional[str]) -> ChatMessageDTO:
        message = ChatMessage.text(
            trip_id=trip_id,
            sender_id=sender.id,
            body=body,
            max_length=self._text_max_length,
        )
        return await self._append(message, sender)

    async def send_voice(self, trip_id: int, sender: User, voice_payload: Optional[str]) -> ChatMessageDTO:
        message = ChatMessage.voice(
            trip_id=trip_id,
            sender_id=sender.id,
            voice_payload=voice_payload,
            max_bytes=self._voice_max_bytes,
        )
        return await self._append(message, sender)

    async def retract(self, trip_id: int, message_id: int, user_id: int) -> int:
        """
        撤回消息（仅发送者本人）

        删除是"存在才删除"的原子操作；并发撤回同一条消息时只有一方成功，
        另一方得到 ChatMessageNotFoundException。
        """
        async with self._uow_factory() as uow:
            await self._require_access(uow, trip_id, user_id)
            message = await uow.chat_message_repository.get_by_id(message_id)
            if message is None or not message.belongs_to_trip(trip_id):
                raise ChatMessageNotFoundException(message_id)
            if not can_retract(user_id, message):
                logger.info(
                    "chat_unsend_rejected",
                    trip_id=trip_id,
                    message_id=message_id,
                    user_id=user_id,
                )
                raise MessageOwnershipException(message_id)
            deleted = await uow.chat_message_repository.delete(message_id)
            if not deleted:
                raise ChatMessageNotFoundException(message_id)
        logger.info("chat_message_deleted", trip_id=trip_id, message_id=message_id, user_id=user_id)
        return message_id
