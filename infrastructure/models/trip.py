"""
行程数据库模型（只承载聊天鉴权需要的成员关系）
"""
from sqlalchemy import Column, ForeignKey, Integer, String, Table

from .base import Base


trip_participants = Table(
    "trip_participants",
    Base.metadata,
    Column("trip_id", Integer, ForeignKey("trips.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, comment="行程标题")
    created_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="创建者",
    )

    def __repr__(self):
        return f"<TripModel(id={self.id}, title='{self.title}', created_by={self.created_by})>"
