"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, Field, model_serializer, ConfigDict
from typing import Optional
from datetime import datetime, timezone

from domain.chat.entity import ChatMessage, MessageKind
from domain.user.entity import User


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    model_config = ConfigDict(populate_by_name=True)

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class SenderProfileDTO(DTOBase):
    """消息发送者公开资料"""
    id: int
    name: Optional[str] = None
    contact: Optional[str] = None
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User], fallback_id: int) -> "SenderProfileDTO":
        # 发送者账号已不存在时只保留ID
        if user is None:
            return cls(id=fallback_id)
        return cls(**user.public_profile())


class ChatMessageDTO(DTOBase):
    """聊天消息DTO（对外字段使用 camelCase）"""
    id: int
    trip_id: int = Field(..., alias="tripId")
    sender: SenderProfileDTO
    kind: MessageKind
    body: str = ""
    voice_payload: Optional[str] = Field(None, alias="voicePayload")
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_entity(cls, message: ChatMessage, sender: Optional[User]) -> "ChatMessageDTO":
        return cls(
            id=message.id,
            trip_id=message.trip_id,
            sender=SenderProfileDTO.from_user(sender, message.sender_id),
            kind=message.kind,
            body=message.body,
            voice_payload=message.voice_payload,
            created_at=message.created_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MessageDeletedDTO(DTOBase):
    message_id: int = Field(..., alias="messageId")
    trip_id: int = Field(..., alias="tripId")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
