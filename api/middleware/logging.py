"""
HTTP 请求日志中间件

每个请求记录开始/结束两条日志并返回 X-Process-Time。WebSocket 连接不经过
这里，由 ws 路由自行绑定连接级日志上下文。
"""
import time
from typing import Any, Mapping

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import get_logger


logger = get_logger(__name__)


def _mask_sensitive(params: Mapping[str, Any], sensitive: frozenset) -> dict:
    """查询参数脱敏（WebSocket 握手同样把 token 放在查询串里）"""
    return {k: "***" if str(k).lower() in sensitive else v for k, v in params.items()}


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志：按状态码选择日志级别，敏感查询参数脱敏"""

    SKIP_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
    SENSITIVE_PARAMS = frozenset({"token", "access_token", "authorization", "secret", "api_key"})

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        info = self._request_info(request)
        logger.info("request_started", **info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=round(time.perf_counter() - started, 4),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
                **info,
            )
            raise

        duration = time.perf_counter() - started
        self._log_response(response, duration, info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    def _request_info(self, request: Request) -> dict:
        info: dict = {"method": request.method, "path": request.url.path}
        if request.query_params:
            info["query_params"] = _mask_sensitive(request.query_params, self.SENSITIVE_PARAMS)
        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    @staticmethod
    def _log_response(response: Response, duration: float, info: dict) -> None:
        log_data = {"status_code": response.status_code, "duration": round(duration, 4), **info}
        if response.status_code < 400:
            logger.info("request_completed", **log_data)
        elif response.status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
