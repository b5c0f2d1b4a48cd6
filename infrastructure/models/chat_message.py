"""
聊天消息数据库模型
"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from datetime import datetime, timezone

from .base import Base


class ChatMessageModel(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        comment="所属行程",
    )
    sender_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="发送者",
    )
    kind = Column(String(16), nullable=False, default="text", comment="text | voice")
    body = Column(Text, nullable=False, default="", comment="文本内容（已去除首尾空白）")
    voice_payload = Column(Text, nullable=True, comment="语音内容（data URI 或 URL）")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="服务端写入时间",
    )

    __table_args__ = (
        Index("ix_chat_messages_trip_created", "trip_id", "created_at", "id"),
    )

    def __repr__(self):
        return f"<ChatMessageModel(id={self.id}, trip_id={self.trip_id}, kind='{self.kind}')>"
