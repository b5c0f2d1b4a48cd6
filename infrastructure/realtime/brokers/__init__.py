"""Realtime brokers (in-memory, Redis)."""
from __future__ import annotations

from application.ports.realtime import RealtimeBrokerPort
from core.config import settings

from .inmemory import InMemoryRealtimeBroker
from .redis import RedisRealtimeBroker


def build_broker() -> RealtimeBrokerPort:
    """Select a broker from settings.

    ``REALTIME_BROKER=auto`` picks Redis when ``REDIS__URL`` is set and
    falls back to the in-memory broker otherwise.
    """
    choice = (settings.REALTIME_BROKER or "auto").lower()
    if choice == "redis" or (choice == "auto" and settings.redis.url):
        return RedisRealtimeBroker(settings.redis.url)
    if choice not in {"auto", "inmemory"}:
        raise ValueError(f"Unknown REALTIME_BROKER: {choice}")
    return InMemoryRealtimeBroker()


__all__ = [
    "InMemoryRealtimeBroker",
    "RedisRealtimeBroker",
    "build_broker",
]
