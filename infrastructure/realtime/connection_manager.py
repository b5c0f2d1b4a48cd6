"""In-process WebSocket connection manager.

Keeps track of live connections and room memberships, and provides
send/broadcast helpers for this process. Cross-process broadcast is
handled by a RealtimeBrokerPort implementation.

The registry lock only guards the maps below; it is never held while a
frame is written to a socket. Every outbound frame goes through the
connection's bounded send queue, drained by one sender task.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from fastapi import WebSocket

from application.ports.realtime import Envelope, trip_room
from core.logging_config import get_logger
from core.config import settings
from domain.user.entity import User


logger = get_logger(__name__)

_OVERFLOW_POLICIES = {"drop_oldest", "drop_new", "disconnect"}


@dataclass(eq=False)
class Connection:
    """One authenticated realtime session."""

    id: str
    user: User
    ws: WebSocket
    joined_rooms: Set[int] = field(default_factory=set)

    @property
    def user_id(self) -> int:
        return int(self.user.id)


class ConnectionManager:
    """Manage per-process WebSocket connections and room memberships."""

    def __init__(
        self,
        *,
        queue_max: Optional[int] = None,
        overflow_policy: Optional[str] = None,
    ) -> None:
        # connection id -> Connection
        self._connections: Dict[str, Connection] = {}
        # room key -> set[connection id]
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        # per-connection send queues and sender tasks
        self._send_queues: Dict[str, asyncio.Queue] = {}
        self._sender_tasks: Dict[str, asyncio.Task] = {}
        self._queue_max = max(1, int(queue_max or settings.REALTIME_WS_SEND_QUEUE_MAX))
        policy = (overflow_policy or settings.REALTIME_WS_SEND_OVERFLOW_POLICY or "drop_oldest").lower()
        if policy not in _OVERFLOW_POLICIES:
            logger.warning("ws_send_queue_policy_invalid", policy=policy, fallback="drop_oldest")
            policy = "drop_oldest"
        self._overflow_policy = policy

    async def add(self, conn: Connection) -> None:
        async with self._lock:
            self._connections[conn.id] = conn
            q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_max)
            self._send_queues[conn.id] = q
            self._sender_tasks[conn.id] = asyncio.create_task(
                self._sender_loop(conn, q), name=f"ws-sender-{conn.id}"
            )
        logger.info("ws_connected", connection_id=conn.id, user_id=conn.user_id)

    async def remove(self, conn_id: str) -> Optional[Connection]:
        """Drop a connection from every room. Safe to call more than once."""
        async with self._lock:
            conn = self._connections.pop(conn_id, None)
            if conn is None:
                return None
            for trip_id in conn.joined_rooms:
                self._discard_member(trip_room(trip_id), conn_id)
            conn.joined_rooms.clear()
            task = self._sender_tasks.pop(conn_id, None)
            self._send_queues.pop(conn_id, None)
        if task is not None:
            task.cancel()
        logger.info("ws_disconnected", connection_id=conn_id, user_id=conn.user_id)
        return conn

    async def get(self, conn_id: str) -> Optional[Connection]:
        async with self._lock:
            return self._connections.get(conn_id)

    async def join(self, conn_id: str, trip_id: int) -> bool:
        """Add the connection to a trip room; False when it is already gone."""
        room = trip_room(trip_id)
        async with self._lock:
            conn = self._connections.get(conn_id)
            if conn is None:
                return False
            self._rooms.setdefault(room, set()).add(conn_id)
            conn.joined_rooms.add(trip_id)
        logger.info("ws_join_room", room=room, connection_id=conn_id, user_id=conn.user_id)
        return True

    async def leave(self, conn_id: str, trip_id: int) -> bool:
        room = trip_room(trip_id)
        async with self._lock:
            conn = self._connections.get(conn_id)
            if conn is None:
                return False
            conn.joined_rooms.discard(trip_id)
            self._discard_member(room, conn_id)
        logger.info("ws_leave_room", room=room, connection_id=conn_id, user_id=conn.user_id)
        return True

    async def room_members(self, room: str) -> List[str]:
        async with self._lock:
            return sorted(self._rooms.get(room, set()))

    async def rooms(self) -> List[str]:
        async with self._lock:
            return sorted(self._rooms)

    def __len__(self) -> int:
        return len(self._connections)

    async def broadcast_room(self, room: str, envelope: Envelope) -> None:
        async with self._lock:
            targets = list(self._rooms.get(room, set()))
        if not targets:
            return
        payload = envelope.model_dump(mode="json")
        for conn_id in targets:
            await self._enqueue(conn_id, payload, context={"room": room})

    async def send_to(self, conn_id: str, envelope: Envelope) -> None:
        await self._enqueue(conn_id, envelope.model_dump(mode="json"), context={"connection_id": conn_id})

    async def close_all(self, code: int = 1001) -> None:
        """Close every live socket (server shutdown)."""
        async with self._lock:
            conns = list(self._connections.values())
        for conn in conns:
            await self.remove(conn.id)
            try:
                await conn.ws.close(code=code)
            except RuntimeError:
                # already closed by the peer
                pass

    def _discard_member(self, room: str, conn_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            # 房间最后一名成员离开后回收
            del self._rooms[room]

    async def _enqueue(self, conn_id: str, payload: dict, context: dict) -> None:
        q = self._send_queues.get(conn_id)
        if q is None:
            return
        try:
            q.put_nowait(payload)
        except asyncio.QueueFull:
            policy = self._overflow_policy
            if policy == "drop_new":
                logger.warning("ws_send_queue_drop_new", **context)
                return
            if policy == "disconnect":
                logger.warning("ws_send_queue_disconnect", **context)
                conn = self._connections.get(conn_id)
                await self.remove(conn_id)
                if conn is not None:
                    try:
                        await conn.ws.close(code=1013)
                    except RuntimeError:
                        pass
                return
            # default: drop_oldest
            try:
                q.get_nowait()
            except asyncio.QueueEmpty:
                pass
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning("ws_send_queue_drop_after_trim", **context)

    async def _sender_loop(self, conn: Connection, q: asyncio.Queue) -> None:
        try:
            while True:
                payload = await q.get()
                try:
                    await conn.ws.send_json(payload)
                except Exception as exc:  # pragma: no cover
                    logger.warning("ws_send_failed", connection_id=conn.id, error=str(exc))
        except asyncio.CancelledError:  # graceful exit
            return
