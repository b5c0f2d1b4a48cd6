import asyncio
import json

import pytest

from application.ports.realtime import Envelope
from core.config import settings
from infrastructure.realtime.brokers import InMemoryRealtimeBroker, RedisRealtimeBroker, build_broker


class _FakePubSub:
    def __init__(self, messages):
        self._messages = messages
        self.patterns = []
        self.closed = False

    async def psubscribe(self, *patterns):
        self.patterns.extend(patterns)

    async def listen(self):
        for message in self._messages:
            yield message
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


class _FakeRedis:
    def __init__(self, messages=()):
        self.published = []
        self.pubsub_instance = _FakePubSub(list(messages))
        self.closed = False

    async def publish(self, channel, data):
        self.published.append((channel, data))
        return 1

    def pubsub(self):
        return self.pubsub_instance

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_inmemory_broker_delivers_in_publish_order():
    broker = InMemoryRealtimeBroker()
    seen = []

    async def handler(env: Envelope) -> None:
        seen.append((env.room, env.data["n"]))

    await broker.subscribe(handler)
    for n in range(3):
        await broker.publish("trip_1", Envelope(type="message-created", data={"n": n}))

    assert seen == [("trip_1", 0), ("trip_1", 1), ("trip_1", 2)]
    await broker.aclose()
    await broker.publish("trip_1", Envelope(type="message-created", data={"n": 9}))
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_redis_broker_publishes_to_room_channel():
    fake = _FakeRedis()
    broker = RedisRealtimeBroker(client=fake, channel_prefix="tc:rt:")

    await broker.publish("trip_5", Envelope(type="message-deleted", data={"messageId": 3, "tripId": 5}))

    channel, raw = fake.published[0]
    assert channel == "tc:rt:trip_5"
    body = json.loads(raw)
    assert body["room"] == "trip_5"
    assert body["type"] == "message-deleted"
    assert body["data"] == {"messageId": 3, "tripId": 5}


@pytest.mark.asyncio
async def test_redis_broker_dispatches_pattern_messages_and_skips_garbage():
    good = Envelope(type="message-created", room="trip_2", data={"id": 1})
    fake = _FakeRedis(
        [
            {"type": "psubscribe", "data": 1},
            {"type": "pmessage", "data": "not json"},
            {"type": "pmessage", "channel": "tc:trip_2", "data": good.model_dump_json()},
        ]
    )
    broker = RedisRealtimeBroker(client=fake, channel_prefix="tc")
    received: asyncio.Queue = asyncio.Queue()

    await broker.subscribe(received.put)
    env = await asyncio.wait_for(received.get(), timeout=1)

    assert fake.pubsub_instance.patterns == ["tc:*"]
    assert env.room == "trip_2"
    assert env.data == {"id": 1}
    assert received.empty()

    await broker.aclose()
    assert fake.pubsub_instance.closed
    # injected clients belong to the caller
    assert not fake.closed


@pytest.mark.asyncio
async def test_build_broker_selection(monkeypatch):
    monkeypatch.setattr(settings, "REALTIME_BROKER", "auto")
    monkeypatch.setattr(settings.redis, "url", None)
    assert isinstance(build_broker(), InMemoryRealtimeBroker)

    monkeypatch.setattr(settings.redis, "url", "redis://localhost:6379/0")
    assert isinstance(build_broker(), RedisRealtimeBroker)

    monkeypatch.setattr(settings, "REALTIME_BROKER", "inmemory")
    assert isinstance(build_broker(), InMemoryRealtimeBroker)

    monkeypatch.setattr(settings, "REALTIME_BROKER", "carrier-pigeon")
    with pytest.raises(ValueError):
        build_broker()
