"""
统一响应格式

HTTP 接口统一返回 ``{code, message, data, error}``；聊天历史这类有固定上限的
列表使用 ``ListData{count, items}``，不提供分页游标。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


def to_utc_iso(ts: datetime) -> str:
    """UTC ISO8601，统一 Z 结尾（无时区的值按 UTC 处理）"""
    ts = ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)
    return ts.isoformat().replace("+00:00", "Z")


class ErrorDetail(BaseModel):
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def _timestamp_z(self, timestamp: datetime) -> str:
        return to_utc_iso(timestamp)


class Response(BaseModel, Generic[T]):
    """统一响应模型"""
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class ListData(BaseModel, Generic[T]):
    count: int
    items: list[T]


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def list_response(items: list, message: str = "Success") -> Response[ListData]:
    """列表响应：data = {count, items}"""
    return Response(code=BusinessCode.SUCCESS, message=message, data=ListData(count=len(items), items=items))


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    *,
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Response:
    """
    错误响应

    与 WebSocket ``error`` 帧共用同一套业务码与 error_type，
    客户端可以用同一份映射处理两种通道的错误。
    """
    return Response(
        code=code,
        message=message,
        error=ErrorDetail(type=error_type, details=details, field=field, request_id=request_id),
    )
