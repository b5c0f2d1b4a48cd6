"""
用户仓储（SQLAlchemy）：按 ID 读取身份，批量读取消息发送者资料
"""
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException
from domain.user.entity import User
from domain.user.repository import UserRepository
from infrastructure.models.user import UserModel


logger = get_logger(__name__)


def _as_user(row: UserModel) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        avatar_url=row.avatar_url,
        is_active=row.is_active,
        created_at=row.created_at,
    )


class SQLAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        user.validate()
        row = UserModel(name=user.name, email=user.email, avatar_url=user.avatar_url, is_active=user.is_active)
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError:
            logger.warning("user_email_conflict", email=user.email)
            raise DomainValidationException("Email already registered", field="email") from None
        await self.session.refresh(row)
        return _as_user(row)

    async def get_by_id(self, user_id: int) -> Optional[User]:
        row = await self.session.get(UserModel, user_id)
        return _as_user(row) if row is not None else None

    async def get_by_ids(self, user_ids: Iterable[int]) -> Dict[int, User]:
        """{id: User}；查不到的 ID 不出现在结果里"""
        ids = {int(uid) for uid in user_ids}
        if not ids:
            return {}
        rows = await self.session.scalars(select(UserModel).where(UserModel.id.in_(ids)))
        return {row.id: _as_user(row) for row in rows}
