"""领域层业务异常定义，供领域、应用与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
The realtime path reuses the same exceptions and turns them into
caller-local `error` frames instead of HTTP responses.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class TripNotFoundException(BusinessException):
    def __init__(self, trip_id: Optional[int] = None):
        details = {"trip_id": trip_id} if trip_id is not None else None
        super().__init__(
            code=BusinessCode.TRIP_NOT_FOUND,
            message="Trip not found",
            error_type="TripNotFound",
            details=details,
        )


class TripAccessDeniedException(BusinessException):
    """Caller is neither the trip's creator nor a listed participant."""

    def __init__(self, trip_id: Optional[int] = None):
        details = {"trip_id": trip_id} if trip_id is not None else None
        super().__init__(
            code=BusinessCode.TRIP_ACCESS_DENIED,
            message="Not authorized to access this trip",
            error_type="AuthorizationError",
            details=details,
        )


class ChatMessageNotFoundException(BusinessException):
    def __init__(self, message_id: Optional[int] = None):
        details = {"message_id": message_id} if message_id is not None else None
        super().__init__(
            code=BusinessCode.CHAT_MESSAGE_NOT_FOUND,
            message="Message not found",
            error_type="MessageNotFound",
            details=details,
        )


class MessageOwnershipException(BusinessException):
    """Only the sender of a message may retract it."""

    def __init__(self, message_id: Optional[int] = None):
        details = {"message_id": message_id} if message_id is not None else None
        super().__init__(
            code=BusinessCode.MESSAGE_OWNERSHIP_REQUIRED,
            message="You can only delete your own messages",
            error_type="OwnershipError",
            details=details,
        )
