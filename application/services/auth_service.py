"""
连接鉴权服务 - HTTP Bearer 与 WebSocket 握手共用同一套校验
"""
from typing import Callable, Optional

from domain.user.entity import User
from domain.common.unit_of_work import AbstractUnitOfWork
from application.services.token_service import TokenService
from core.exceptions import UnauthorizedException
from core.logging_config import get_logger


logger = get_logger(__name__)


class ConnectionAuthenticator:
    """把 Bearer 令牌解析为仍然存在且处于激活状态的用户。"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        token_service: Optional[TokenService] = None,
    ):
        self._uow_factory = uow_factory
        self._token_service = token_service or TokenService()

    async def authenticate(self, token: Optional[str]) -> User:
        """
        校验令牌并返回用户

        Raises:
            TokenExpiredException: 令牌已过期
            UnauthorizedException: 缺失/无效/类型错误，或用户不存在/已停用
        """
        if not token:
            raise UnauthorizedException("Authentication required")

        user_id = await self._token_service.verify_access_token(token)
        if user_id is None:
            raise UnauthorizedException("Invalid authentication credentials")

        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(user_id)

        if user is None:
            logger.info("auth_user_missing", user_id=user_id)
            raise UnauthorizedException("User not found")
        if not user.is_active:
            logger.info("auth_user_inactive", user_id=user_id)
            raise UnauthorizedException("User account is inactive")
        return user
