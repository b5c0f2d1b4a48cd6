"""
Trip Chat 实时服务入口

HTTP：/api/v1/chat/{trip_id}/messages；WebSocket：/api/v1/ws
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import chat as chat_routes
from api.routes import ws as ws_routes
from application.services.chat_service import ChatApplicationService
from application.services.realtime_service import RealtimeSessionManager
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger
from core.response import success_response
from infrastructure.database import create_tables
from infrastructure.realtime.brokers import build_broker
from infrastructure.realtime.connection_manager import ConnectionManager
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


logger = get_logger(__name__)


def build_session_manager() -> RealtimeSessionManager:
    return RealtimeSessionManager(
        broker=build_broker(),
        connections=ConnectionManager(),
        chat_service=ChatApplicationService(uow_factory=SQLAlchemyUnitOfWork),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        # 生产环境的表结构由迁移维护
        await create_tables()
        logger.info("database_tables_ensured")

    sessions = build_session_manager()
    await sessions.start()
    app.state.realtime_sessions = sessions
    logger.info("realtime_started", broker=type(sessions.broker).__name__, environment=settings.ENVIRONMENT)
    try:
        yield
    finally:
        await sessions.aclose()
        app.state.realtime_sessions = None
        logger.info("realtime_stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="行程协作应用的实时聊天服务",
)

# add_middleware 后加的在外层：CORS -> RequestID -> Logging
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(chat_routes.router, prefix="/api/v1")
app.include_router(ws_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return success_response(
        data={"name": settings.PROJECT_NAME, "version": settings.VERSION, "websocket": "/api/v1/ws"},
        message="Welcome",
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """存活检查，附带本进程在线连接数"""
    sessions = getattr(app.state, "realtime_sessions", None)
    return success_response(
        data={
            "status": "healthy",
            "connections": len(sessions.connections) if sessions is not None else 0,
        },
        message="OK",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
