from .request_id import RequestIDMiddleware, bind_connection_context
from .logging import LoggingMiddleware

__all__ = [
    "RequestIDMiddleware",
    "LoggingMiddleware",
    "bind_connection_context",
]
