"""Redis Pub/Sub based RealtimeBrokerPort implementation.

Publishes to per-room channels `{prefix}:{room}` and pattern-subscribes
`{prefix}:*` so every process receives events for every room and fans
them out to its local members. Redis preserves publish order per
channel, so frames from one process arrive in the order that process
persisted them. The room sequencer is per process: two workers writing
to the same room may publish in a different order than the rows were
committed.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import redis.asyncio as aioredis
from pydantic import ValidationError

from application.ports.realtime import Envelope, RealtimeBrokerPort, Handler
from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class RedisRealtimeBroker(RealtimeBrokerPort):
    def __init__(
        self,
        url: Optional[str] = None,
        *,
        channel_prefix: Optional[str] = None,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self._url = url or settings.redis.url
        self._prefix = (channel_prefix or settings.redis.channel_prefix).rstrip(":")
        self._client: Optional[aioredis.Redis] = client
        self._owns_client = client is None
        self._pubsub = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self._handler: Optional[Handler] = None

    def _room_channel(self, room: str) -> str:
        return f"{self._prefix}:{room}"

    def _ensure_client(self) -> aioredis.Redis:
        if self._client is None:
            if not self._url:
                raise RuntimeError("Redis URL not configured. Set REDIS__URL to use the redis broker.")
            self._client = aioredis.from_url(self._url, decode_responses=True)
        return self._client

    async def publish(self, room: str, envelope: Envelope) -> None:  # type: ignore[override]
        client = self._ensure_client()
        if envelope.room is None:
            envelope = envelope.model_copy(update={"room": room})
        channel = self._room_channel(room)
        try:
            await client.publish(channel, envelope.model_dump_json())
        except aioredis.RedisError as exc:  # pragma: no cover
            logger.error("redis_publish_failed", channel=channel, error=str(exc))
            raise

    async def _listen(self) -> None:
        assert self._pubsub is not None and self._handler is not None
        pattern = f"{self._prefix}:*"
        logger.info("redis_pubsub_subscribed", pattern=pattern)
        try:
            async for message in self._pubsub.listen():
                if self._stopping.is_set():
                    break
                if message.get("type") != "pmessage":
                    continue
                try:
                    env = Envelope.model_validate_json(message.get("data") or "")
                except (ValidationError, ValueError) as exc:
                    logger.warning("redis_pubsub_parse_failed", error=str(exc))
                    continue
                try:
                    await self._handler(env)
                except Exception as exc:  # pragma: no cover
                    logger.warning("redis_pubsub_handler_failed", room=env.room, error=str(exc))
        except asyncio.CancelledError:
            raise
        except aioredis.RedisError as exc:  # pragma: no cover
            logger.error("redis_pubsub_listen_failed", error=str(exc))

    async def subscribe(self, handler: Handler) -> None:  # type: ignore[override]
        self._handler = handler
        client = self._ensure_client()
        self._pubsub = client.pubsub()
        await self._pubsub.psubscribe(f"{self._prefix}:*")
        self._task = asyncio.create_task(self._listen(), name="redis-realtime-listener")

    async def aclose(self) -> None:  # type: ignore[override]
        self._stopping.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


__all__ = ["RedisRealtimeBroker"]
