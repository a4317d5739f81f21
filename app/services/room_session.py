"""
app.services.room_session
~~~~~~~~~~~~~~~~~~~~~~~~~

单条连接的房间协议状态机。

状态只有两个：未认证 → 已认证。房间成员关系是一个集合而不是状态，
一条连接可以同时挂在零个或多个房间上。

每个入站事件由 ``dispatch()`` 在独立的 asyncio 任务中处理；错误只影响
当前连接的当前操作，通过 ``error`` 事件回发给本连接，绝不广播。
"""
from __future__ import annotations

from pydantic import ValidationError

from app.core.logging import get_logger
from app.db.store import Store
from app.schemas.chat import MessageKind
from app.schemas.events import (
    INBOUND_PAYLOADS,
    AuthenticatePayload,
    EventFrame,
    InboundEvent,
    OutboundEvent,
    RoomPayload,
    SendMessagePayload,
    TypingPayload,
)
from app.services.broadcast import BroadcastCoordinator
from app.services.connection import Connection
from app.services.presence import PresenceRegistry
from app.services.room_broadcaster import RoomBroadcaster

logger = get_logger(__name__)

NOT_AUTHENTICATED = "Not authenticated"
NOT_A_MEMBER = "Not a member of this room"
USER_NOT_FOUND = "User not found"
ROOM_NOT_FOUND = "Room not found"

# 处理过程中出现未预期异常（如持久化失败）时回发给客户端的文案
_FAILURE_MESSAGES: dict[InboundEvent, str] = {
    InboundEvent.AUTHENTICATE: "Authentication failed",
    InboundEvent.JOIN_ROOM: "Failed to join room",
    InboundEvent.LEAVE_ROOM: "Failed to leave room",
    InboundEvent.SEND_MESSAGE: "Failed to send message",
    InboundEvent.TYPING: "Failed to send typing status",
}


class RoomSession:
    """一条已接入连接的协议处理器。

    Attributes:
        connection: 本会话对应的连接。
        presence: 进程级在线状态登记表。
        broadcaster: 房间广播器。
        store: 持久化仓库。
        coordinator: 消息广播协调器。
    """

    def __init__(
        self,
        connection: Connection,
        presence: PresenceRegistry,
        broadcaster: RoomBroadcaster,
        store: Store,
        coordinator: BroadcastCoordinator,
    ) -> None:
        self.connection = connection
        self.presence = presence
        self.broadcaster = broadcaster
        self.store = store
        self.coordinator = coordinator

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def user_id(self) -> int | None:
        return self.connection.user_id

    async def connect(self) -> None:
        """接受 WebSocket 并登记到广播器。"""
        await self.connection.accept()
        self.broadcaster.register(self.connection)
        logger.info("连接已建立 | 在线连接: %d", self.broadcaster.connection_count)

    # ── 事件分发 ──────────────────────────────────────────────────────

    async def dispatch(self, frame: EventFrame) -> None:
        """校验并处理一个入站事件帧。"""
        try:
            event = InboundEvent(frame.event)
        except ValueError:
            await self._error(f"Unknown event: {frame.event}")
            return

        try:
            payload = INBOUND_PAYLOADS[event].model_validate(frame.data)
        except ValidationError as e:
            logger.info("事件载荷非法 | event=%s | err=%s", event.value, e.errors())
            await self._error(f"Invalid payload for {event.value}")
            return

        try:
            await self._route(event, payload)
        except Exception as e:
            logger.error("事件处理异常 | event=%s | err=%s", event.value, e, exc_info=True)
            await self._error(_FAILURE_MESSAGES[event])

    async def _route(self, event: InboundEvent, payload: object) -> None:
        if isinstance(payload, AuthenticatePayload):
            await self.authenticate(payload.user_id)
        elif isinstance(payload, SendMessagePayload):
            await self.send_message(payload.room_id, payload.content, payload.message_type)
        elif isinstance(payload, TypingPayload):
            await self.typing(payload.room_id, payload.is_typing)
        elif isinstance(payload, RoomPayload) and event is InboundEvent.JOIN_ROOM:
            await self.join_room(payload.room_id)
        elif isinstance(payload, RoomPayload) and event is InboundEvent.LEAVE_ROOM:
            await self.leave_room(payload.room_id)

    # ── 协议操作 ──────────────────────────────────────────────────────

    async def authenticate(self, user_id: int) -> None:
        """绑定用户身份。用户不存在时连接保持未认证。"""
        user = await self.store.get_user_by_id(user_id)
        if user is None:
            await self._error(USER_NOT_FOUND)
            return
        if self.connection.closed:
            return

        previous = self.connection.user_id
        if previous is not None and previous != user.id:
            self.presence.mark_offline(previous, self.connection_id)
        self.connection.user_id = user.id
        self.presence.mark_online(user.id, self.connection_id)

        logger.info("连接已认证 | user=%s", user.id)
        await self.connection.send(OutboundEvent.AUTHENTICATED, {"userId": user.id})

    async def join_room(self, room_id: int) -> None:
        """把连接挂到一个已有成员关系的房间上（实时层从不创建成员关系）。"""
        user_id = self.user_id
        if user_id is None:
            await self._error(NOT_AUTHENTICATED)
            return

        if not await self.store.is_user_in_room(room_id, user_id):
            await self._error(NOT_A_MEMBER)
            return
        if self.connection.closed:
            return

        self.broadcaster.add_to_room(room_id, self.connection_id)
        self.presence.record_room_join(self.connection_id, room_id)

        user = await self.store.get_user_by_id(user_id)
        await self.broadcaster.emit_to_room(
            room_id,
            OutboundEvent.USER_JOINED,
            {
                "userId": user_id,
                "displayName": user.display_name if user else None,
                "roomId": room_id,
            },
            exclude=self.connection_id,
        )
        await self._emit_online_users(room_id)
        logger.info("加入房间 | user=%s | room=%s", user_id, room_id)

    async def leave_room(self, room_id: int) -> None:
        """离开房间分组。无论是否认证都会执行清理。"""
        self.broadcaster.remove_from_room(room_id, self.connection_id)
        self.presence.record_room_leave(self.connection_id, room_id)

        if self.user_id is not None:
            await self.broadcaster.emit_to_room(
                room_id,
                OutboundEvent.USER_LEFT,
                {"userId": self.user_id, "roomId": room_id},
            )
        logger.info("离开房间 | user=%s | room=%s", self.user_id, room_id)

    async def send_message(
        self, room_id: int, content: str, message_type: MessageKind = "text",
    ) -> None:
        """发送消息。每次都向 Store 重新校验成员关系。"""
        user_id = self.user_id
        if user_id is None:
            await self._error(NOT_AUTHENTICATED)
            return

        if not await self.store.is_user_in_room(room_id, user_id):
            await self._error(NOT_A_MEMBER)
            return

        room = await self.store.get_room_by_id(room_id)
        if room is None:
            await self._error(ROOM_NOT_FOUND)
            return

        await self.coordinator.broadcast_message(room_id, user_id, content, message_type)

    async def typing(self, room_id: int, is_typing: bool) -> None:
        """转发输入状态给房间里的其他连接。尽力而为，不校验成员关系。"""
        if self.user_id is None:
            return
        await self.broadcaster.emit_to_room(
            room_id,
            OutboundEvent.USER_TYPING,
            {"userId": self.user_id, "roomId": room_id, "isTyping": is_typing},
            exclude=self.connection_id,
        )

    async def disconnect(self) -> None:
        """断线清理（幂等）。

        先同步清掉本连接的全部内存状态，再逐个房间通知剩余成员。
        认证从未完成的连接只做清理、不发通知。
        """
        if self.connection.closed:
            return
        self.connection.closed = True

        rooms = self.presence.forget_connection(self.connection_id)
        self.broadcaster.unregister(self.connection_id)
        user_id = self.user_id
        if user_id is None:
            logger.info("未认证连接已断开")
            return
        self.presence.mark_offline(user_id, self.connection_id)

        for room_id in sorted(rooms):
            try:
                await self.broadcaster.emit_to_room(
                    room_id,
                    OutboundEvent.USER_LEFT,
                    {"userId": user_id, "roomId": room_id},
                )
                await self._emit_online_users(room_id)
            except Exception as e:
                logger.error("断线通知失败 | room=%s | err=%s", room_id, e, exc_info=True)

        logger.info("连接已断开 | user=%s | rooms=%s", user_id, sorted(rooms))

    # ── 内部工具 ──────────────────────────────────────────────────────

    async def _emit_online_users(self, room_id: int) -> None:
        """从 Store 的参与者列表重新计算房间在线用户并广播给全体。"""
        participants = await self.store.get_room_participants(room_id)
        online = self.presence.online_members_of(room_id, [p.user_id for p in participants])
        users = [p.user_id for p in participants if p.user_id in online]
        await self.broadcaster.emit_to_room(
            room_id,
            OutboundEvent.ONLINE_USERS,
            {"roomId": room_id, "users": users},
        )

    async def _error(self, message: str) -> None:
        await self.connection.send(OutboundEvent.ERROR, {"message": message})
