"""
API依赖项 - 认证和服务装配
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

import structlog

from application.services.auth_service import ConnectionAuthenticator
from application.services.chat_service import ChatApplicationService
from domain.user.entity import User
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Optional[str]:
    """从 Authorization: Bearer 中提取token（缺失时交给鉴权服务报错）"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials
    return None


def get_authenticator() -> ConnectionAuthenticator:
    return ConnectionAuthenticator(uow_factory=SQLAlchemyUnitOfWork)


def get_chat_service() -> ChatApplicationService:
    return ChatApplicationService(uow_factory=SQLAlchemyUnitOfWork)


async def get_current_user(
    token: Optional[str] = Depends(get_token),
    authenticator: ConnectionAuthenticator = Depends(get_authenticator),
) -> User:
    """获取当前登录用户（与 WebSocket 握手共用同一鉴权逻辑）"""
    user = await authenticator.authenticate(token)
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user
