"""用户仓储接口"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from .entity import User


class UserRepository(ABC):
    @abstractmethod
    async def create(self, user: User) -> User: ...

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_by_ids(self, user_ids: Iterable[int]) -> Dict[int, User]:
        """批量读取（拼装消息发送者资料）"""
