"""In-process broker: the default when no Redis URL is configured.

Handlers run inline in the publisher's task, so within a room the order of
``publish`` calls is the delivery order. Only correct for a single worker
process; multi-worker deployments need the Redis broker.
"""
from __future__ import annotations

from typing import List

from application.ports.realtime import Envelope, Handler, RealtimeBrokerPort
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryRealtimeBroker(RealtimeBrokerPort):
    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    async def publish(self, room: str, envelope: Envelope) -> None:  # type: ignore[override]
        if envelope.room != room:
            envelope = envelope.model_copy(update={"room": room})
        for handler in tuple(self._handlers):
            try:
                await handler(envelope)
            except Exception as exc:
                # 单个订阅者失败不影响其余订阅者
                logger.warning("inmemory_broker_handler_failed", room=room, type=envelope.type, error=str(exc))

    async def subscribe(self, handler: Handler) -> None:  # type: ignore[override]
        self._handlers.append(handler)
        logger.info("inmemory_broker_subscribed", handlers=len(self._handlers))

    async def aclose(self) -> None:  # type: ignore[override]
        self._handlers.clear()
