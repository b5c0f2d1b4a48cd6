"""Application service for realtime WebSocket workflows.

Keeps application logic (authorization, persistence, ordering) separate
from the concrete connection management and broadcast transport.

Each connection's receive loop calls :meth:`RealtimeSessionManager.handle_event`
sequentially; different connections run concurrently. Membership is
re-checked against the store on every event, and every accepted event is
persisted before it is published to the room.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from fastapi import WebSocket

from application.dto import MessageDeletedDTO, SenderProfileDTO
from application.dtos.realtime import (
    InvalidEventException,
    JoinRoomEvent,
    LeaveRoomEvent,
    PingEvent,
    PongEvent,
    SendTextEvent,
    SendVoiceEvent,
    UnsendEvent,
    event_trip_id,
    parse_client_event,
)
from application.ports.realtime import Envelope, RealtimeBrokerPort, trip_room
from application.services.chat_service import ChatApplicationService
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.user.entity import User
from infrastructure.realtime.connection_manager import Connection, ConnectionManager
from shared.codes import BusinessCode
from shared.keyed_lock import KeyedLock


logger = get_logger(__name__)


class RealtimeSessionManager:
    def __init__(
        self,
        *,
        broker: RealtimeBrokerPort,
        connections: ConnectionManager,
        chat_service: ChatApplicationService,
    ) -> None:
        self._broker = broker
        self._conn = connections
        self._chat = chat_service
        # 同一房间内"持久化 + 发布"串行，保证广播顺序与写入顺序一致
        self._room_sequencer = KeyedLock()
        # 同一条消息的撤回互斥
        self._message_locks = KeyedLock()
        self._handlers: Dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            "join-room": self._on_join_room,
            "leave-room": self._on_leave_room,
            "send-text": self._on_send_text,
            "send-voice": self._on_send_voice,
            "unsend": self._on_unsend,
            "ping": self._on_ping,
            "pong": self._on_pong,
        }

    # Lifecycle
    async def start(self) -> None:
        await self._broker.subscribe(self.on_broker_event)
        logger.info("realtime_session_manager_started")

    async def aclose(self) -> None:
        await self._conn.close_all()
        await self._broker.aclose()
        logger.info("realtime_session_manager_stopped")

    @property
    def connections(self) -> ConnectionManager:
        return self._conn

    @property
    def broker(self) -> RealtimeBrokerPort:
        return self._broker

    # Connection lifecycle management
    async def connect(self, user: User, ws: WebSocket) -> Connection:
        """Register an already-authenticated socket."""
        conn = Connection(id=uuid4().hex, user=user, ws=ws)
        await self._conn.add(conn)
        await self._conn.send_to(
            conn.id,
            Envelope(
                type="connected",
                data={
                    "connectionId": conn.id,
                    "user": SenderProfileDTO.from_user(user, user.id).model_dump(mode="json"),
                },
            ),
        )
        return conn

    async def disconnect(self, conn_id: str) -> None:
        removed = await self._conn.remove(conn_id)
        if removed is not None:
            logger.info("user_disconnected", connection_id=conn_id, user_id=removed.user_id)

    # Event dispatch
    async def handle_event(self, conn_id: str, raw: Any) -> None:
        conn = await self._conn.get(conn_id)
        if conn is None:
            logger.debug("ws_event_after_disconnect", connection_id=conn_id)
            return

        try:
            event = parse_client_event(raw)
        except InvalidEventException as exc:
            await self._send_error(conn, exc, event=exc.event, trip_id=event_trip_id(raw))
            return

        handler = self._handlers[event.type]
        trip_id: Optional[int] = getattr(event, "trip_id", None)
        try:
            await handler(conn, event)
        except BusinessException as exc:
            await self._send_error(conn, exc, event=event.type, trip_id=trip_id)
        except Exception as exc:
            logger.error(
                "ws_event_failed",
                connection_id=conn.id,
                user_id=conn.user_id,
                client_event=event.type,
                trip_id=trip_id,
                error=str(exc),
                exc_info=True,
            )
            await self._send_error(
                conn,
                BusinessException(
                    code=BusinessCode.SYSTEM_ERROR,
                    message="Operation failed",
                    error_type="SystemError",
                ),
                event=event.type,
                trip_id=trip_id,
            )

    # Broker callback (cross-process events → in-process broadcast)
    async def on_broker_event(self, envelope: Envelope) -> None:
        if not envelope.room:
            logger.warning("realtime_event_without_room", type=envelope.type)
            return
        await self._conn.broadcast_room(envelope.room, envelope)
        logger.debug("realtime_event_dispatched", type=envelope.type, room=envelope.room)

    # -------------------- Event handlers --------------------
    async def _on_join_room(self, conn: Connection, event: JoinRoomEvent) -> None:
        await self._chat.ensure_trip_access(event.trip_id, conn.user_id)
        if not await self._conn.join(conn.id, event.trip_id):
            return
        await self._conn.send_to(
            conn.id,
            Envelope(type="room-joined", room=trip_room(event.trip_id), data={"tripId": event.trip_id}),
        )

    async def _on_leave_room(self, conn: Connection, event: LeaveRoomEvent) -> None:
        if not await self._conn.leave(conn.id, event.trip_id):
            return
        await self._conn.send_to(
            conn.id,
            Envelope(type="room-left", room=trip_room(event.trip_id), data={"tripId": event.trip_id}),
        )

    async def _on_send_text(self, conn: Connection, event: SendTextEvent) -> None:
        room = trip_room(event.trip_id)
        async with self._room_sequencer.hold(room):
            dto = await self._chat.send_text(event.trip_id, conn.user, event.body)
            await self._broker.publish(room, Envelope(type="message-created", room=room, data=dto.to_wire()))

    async def _on_send_voice(self, conn: Connection, event: SendVoiceEvent) -> None:
        room = trip_room(event.trip_id)
        async with self._room_sequencer.hold(room):
            dto = await self._chat.send_voice(event.trip_id, conn.user, event.voice_payload)
            await self._broker.publish(room, Envelope(type="message-created", room=room, data=dto.to_wire()))

    async def _on_unsend(self, conn: Connection, event: UnsendEvent) -> None:
        room = trip_room(event.trip_id)
        async with self._message_locks.hold(event.message_id):
            async with self._room_sequencer.hold(room):
                message_id = await self._chat.retract(event.trip_id, event.message_id, conn.user_id)
                payload = MessageDeletedDTO(message_id=message_id, trip_id=event.trip_id).to_wire()
                await self._broker.publish(room, Envelope(type="message-deleted", room=room, data=payload))

    async def _on_ping(self, conn: Connection, event: PingEvent) -> None:
        await self._conn.send_to(conn.id, Envelope(type="pong"))

    async def _on_pong(self, conn: Connection, event: PongEvent) -> None:
        # 客户端心跳回应，无需处理
        return None

    # -------------------- Helpers --------------------
    async def _send_error(
        self,
        conn: Connection,
        exc: BusinessException,
        *,
        event: Optional[str],
        trip_id: Optional[int],
    ) -> None:
        data: Dict[str, Any] = {
            "message": exc.message,
            "code": int(exc.code),
            "errorType": exc.error_type,
            "event": event,
        }
        if trip_id is not None:
            data["tripId"] = trip_id
        logger.info(
            "ws_event_rejected",
            connection_id=conn.id,
            user_id=conn.user_id,
            client_event=event,
            trip_id=trip_id,
            code=int(exc.code),
            error_type=exc.error_type,
        )
        await self._conn.send_to(
            conn.id,
            Envelope(
                type="error",
                room=trip_room(trip_id) if trip_id is not None else None,
                data=data,
            ),
        )
