"""
令牌服务 - 签发与校验访问令牌（JWT）

账号登录由外部系统负责；这里签发的令牌与外部系统共享 SECRET_KEY，
测试与演示脚本也通过它生成令牌。
"""
from typing import Optional
from datetime import datetime, timedelta, timezone
import jwt
import uuid

from domain.user.entity import User
from core.config import settings
from core.exceptions import TokenExpiredException
from core.logging_config import get_logger


logger = get_logger(__name__)


class TokenService:
    """访问令牌签发/校验"""

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ) -> None:
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM
        self._expire_minutes = expire_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, user: User, *, expires_delta: Optional[timedelta] = None) -> str:
        """创建访问令牌"""
        expire = datetime.now(timezone.utc) + (
            expires_delta if expires_delta is not None else timedelta(minutes=self._expire_minutes)
        )
        to_encode = {
            "sub": str(user.id),
            "name": user.name,
            "exp": expire,
            "type": "access",
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    async def verify_access_token(self, token: str) -> Optional[int]:
        """Verify an access JWT and return the user id.

        - Expired token: raise TokenExpiredException
        - Invalid token, wrong type or missing subject: return None
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.InvalidTokenError as exc:
            logger.info("access_token_invalid", error=str(exc))
            return None

        if payload.get("type") != "access":
            return None

        user_id = payload.get("sub")
        if user_id is None:
            return None
        try:
            return int(user_id)
        except (TypeError, ValueError):
            return None
