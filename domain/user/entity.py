"""
用户领域实体

聊天核心只消费身份与公开资料；注册、登录、密码由外部账号系统负责。
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
NAME_MAX_LENGTH = 100


@dataclass
class User:
    id: Optional[int]
    name: str
    email: str
    avatar_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @classmethod
    def new(
        cls,
        name: str,
        email: str,
        *,
        avatar_url: Optional[str] = None,
        is_active: bool = True,
    ) -> "User":
        """创建新用户（写入前校验）；从存储读回的行不再校验"""
        user = cls(id=None, name=name, email=email, avatar_url=avatar_url, is_active=is_active)
        user.validate()
        return user

    def validate(self) -> None:
        if not _EMAIL_RE.match(self.email or ""):
            raise ValueError(f"无效的邮箱格式: {self.email}")
        if not self.name or not self.name.strip():
            raise ValueError("用户名称不能为空")
        if len(self.name) > NAME_MAX_LENGTH:
            raise ValueError(f"用户名称不能超过{NAME_MAX_LENGTH}个字符")

    def public_profile(self) -> dict:
        """随消息与 connected 帧下发的公开资料：{id, name, contact, avatar}"""
        return {
            "id": self.id,
            "name": self.name,
            "contact": self.email,
            "avatar": self.avatar_url,
        }
