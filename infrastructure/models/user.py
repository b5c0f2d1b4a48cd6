"""
用户表（账号由外部系统维护，这里只保存身份与公开资料）
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .base import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, comment="显示名称")
    email = Column(String(100), unique=True, index=True, nullable=False)
    avatar_url = Column(String(500), nullable=True, comment="头像地址")
    # 停用账号无法建立实时连接
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<UserModel(id={self.id}, name='{self.name}')>"
