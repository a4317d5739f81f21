"""
app.schemas.events
~~~~~~~~~~~~~~~~~~

WebSocket 事件协议。

每一帧都是 ``{"event": <事件名>, "data": {...}}`` 的 JSON 对象，双向一致。
入站事件的 ``data`` 由下面的 Pydantic 模型校验；出站事件名集中定义在
``OutboundEvent`` 中，避免字符串散落各处。
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.chat import CamelModel, MessageKind, MessageWithSender, TranslationResult


class InboundEvent(str, Enum):
    AUTHENTICATE = "authenticate"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    SEND_MESSAGE = "send_message"
    TYPING = "typing"


class OutboundEvent(str, Enum):
    AUTHENTICATED = "authenticated"
    ERROR = "error"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    ONLINE_USERS = "online_users"
    NEW_MESSAGE = "new_message"
    USER_TYPING = "user_typing"


class EventFrame(BaseModel):
    """一帧 WebSocket 消息的外层信封。"""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


# ── 入站事件载荷 ──────────────────────────────────────────────────────

class AuthenticatePayload(CamelModel):
    user_id: int


class RoomPayload(CamelModel):
    """``join_room`` / ``leave_room`` 共用。"""

    room_id: int


class SendMessagePayload(CamelModel):
    room_id: int
    content: str
    message_type: MessageKind = "text"


class TypingPayload(CamelModel):
    room_id: int
    is_typing: bool


INBOUND_PAYLOADS: dict[InboundEvent, type[CamelModel]] = {
    InboundEvent.AUTHENTICATE: AuthenticatePayload,
    InboundEvent.JOIN_ROOM: RoomPayload,
    InboundEvent.LEAVE_ROOM: RoomPayload,
    InboundEvent.SEND_MESSAGE: SendMessagePayload,
    InboundEvent.TYPING: TypingPayload,
}


# ── 出站事件载荷 ──────────────────────────────────────────────────────

class NewMessageData(MessageWithSender):
    """``new_message`` 事件：持久化后的消息 + 发送者摘要 + 完整翻译结果。"""

    translation_result: TranslationResult
