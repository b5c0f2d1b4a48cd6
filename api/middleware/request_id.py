"""
Request ID 中间件
用于生成或透传追踪ID，并通过contextvars传递给日志系统；
WebSocket 连接使用 bind_connection_context 绑定连接级上下文。
"""
import uuid
from typing import Optional, Union

from fastapi import Request, WebSocket
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


HEADER_NAME = "X-Request-ID"


def resolve_client_ip(conn: Union[Request, WebSocket]) -> str:
    """获取客户端真实IP（优先代理头）"""
    x_forwarded_for = conn.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    real_ip = conn.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return conn.client.host if conn.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """透传或生成 X-Request-ID，绑定到 structlog 上下文并写回响应头"""

    HEADER_NAME = HEADER_NAME

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = resolve_client_ip(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def bind_connection_context(ws: WebSocket, *, connection_id: Optional[str] = None, user_id: Optional[int] = None) -> str:
    """为 WebSocket 连接绑定日志上下文，返回本连接的 request_id"""
    request_id = ws.headers.get(HEADER_NAME) or str(uuid.uuid4())
    client_ip = resolve_client_ip(ws)
    structlog.contextvars.clear_contextvars()
    ctx = {"request_id": request_id, "client_ip": client_ip, "path": ws.url.path}
    if connection_id is not None:
        ctx["connection_id"] = connection_id
    if user_id is not None:
        ctx["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**ctx)
    return request_id
