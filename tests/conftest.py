"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import asyncio
import os
import tempfile
from typing import Iterable, Optional
from uuid import uuid4

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
# 每次测试会话使用独立的 SQLite 文件
_TEST_DB_DIR = tempfile.mkdtemp(prefix="tripchat-tests-")
os.environ["DATABASE__URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["REALTIME_BROKER"] = "inmemory"
# 测试中关闭空闲心跳
os.environ["REALTIME_WS_IDLE_PING_INTERVAL_S"] = "0"
os.environ.pop("REDIS__URL", None)

import pytest
from sqlalchemy import delete

from application.services.token_service import TokenService
from domain.chat.entity import ChatMessage
from domain.trip.entity import Trip
from domain.user.entity import User
from infrastructure.database import AsyncSessionLocal, create_tables, drop_tables
from infrastructure.models import UserModel, trip_participants
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


async def _reset_schema() -> None:
    await drop_tables()
    await create_tables()


class Seeder:
    """Writes fixture rows through the real repositories."""

    def __init__(self) -> None:
        self.tokens = TokenService()

    async def user(self, name: str = "user", *, active: bool = True) -> User:
        async with SQLAlchemyUnitOfWork() as uow:
            return await uow.user_repository.create(
                User.new(
                    name,
                    f"{name.lower()}-{uuid4().hex[:8]}@example.com",
                    avatar_url=f"https://cdn.example.com/{name.lower()}.png",
                    is_active=active,
                )
            )

    async def external_user(self, name: str, email: str) -> User:
        """Row written by the account system, bypassing new-user checks."""
        async with AsyncSessionLocal() as session:
            row = UserModel(name=name, email=email)
            session.add(row)
            await session.commit()
            user_id = row.id
        async with SQLAlchemyUnitOfWork(readonly=True) as uow:
            return await uow.user_repository.get_by_id(user_id)

    async def remove_participant(self, trip: Trip, user: User) -> None:
        async with AsyncSessionLocal() as session:
            await session.execute(
                delete(trip_participants).where(
                    trip_participants.c.trip_id == trip.id,
                    trip_participants.c.user_id == user.id,
                )
            )
            await session.commit()

    async def trip(self, creator: User, participants: Iterable[User] = (), title: str = "Trip") -> Trip:
        async with SQLAlchemyUnitOfWork() as uow:
            return await uow.trip_repository.create(
                Trip(id=None, title=title, created_by=creator.id, participants=[p.id for p in participants])
            )

    async def message(self, trip: Trip, sender: User, body: str) -> ChatMessage:
        async with SQLAlchemyUnitOfWork() as uow:
            return await uow.chat_message_repository.create(
                ChatMessage.text(trip_id=trip.id, sender_id=sender.id, body=body)
            )

    async def count_messages(self, trip: Trip) -> int:
        async with SQLAlchemyUnitOfWork(readonly=True) as uow:
            return len(await uow.chat_message_repository.list_recent_by_trip(trip.id, limit=10_000))

    def token(self, user: User) -> str:
        return self.tokens.create_access_token(user)


@pytest.fixture
async def db():
    """Fresh schema for async tests."""
    await _reset_schema()
    yield


@pytest.fixture
def sync_db():
    """Fresh schema for TestClient (sync) tests."""
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def seeder() -> Seeder:
    return Seeder()


class FakeWebSocket:
    """Minimal stand-in for a Starlette WebSocket used by unit tests."""

    def __init__(self, *, block: Optional[asyncio.Event] = None) -> None:
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed_with: Optional[int] = None
        self._block = block

    async def send_json(self, data: dict) -> None:
        if self._block is not None:
            await self._block.wait()
        self.sent.append(data)
        self.frames.put_nowait(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    async def next_frame(self, timeout: float = 2.0) -> dict:
        return await asyncio.wait_for(self.frames.get(), timeout=timeout)

    async def next_of_type(self, frame_type: str, timeout: float = 2.0) -> dict:
        while True:
            frame = await self.next_frame(timeout=timeout)
            if frame["type"] == frame_type:
                return frame

    async def assert_silent(self, wait: float = 0.05) -> None:
        await asyncio.sleep(wait)
        assert self.frames.empty(), f"unexpected frames: {list(self.frames._queue)}"


@pytest.fixture
def fake_ws_factory():
    return FakeWebSocket
