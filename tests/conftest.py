"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 内存版 Store、可记录发送内容的假连接，
以及 mock 掉的翻译器，使单元测试无需 MongoDB 和 Gemini 即可运行。
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("GEMINI_API_KEY", "test-fake-key")
os.environ.setdefault("ENVIRONMENT", "test")

from app.schemas.chat import (  # noqa: E402
    Message,
    MessageKind,
    MessageWithSender,
    Participant,
    Room,
    RoomWithCount,
    TranslationResult,
    User,
    UserSummary,
)
from app.services.broadcast import BroadcastCoordinator  # noqa: E402
from app.services.connection import Connection  # noqa: E402
from app.services.presence import PresenceRegistry  # noqa: E402
from app.services.room_broadcaster import RoomBroadcaster  # noqa: E402
from app.services.room_session import RoomSession  # noqa: E402

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class DuplicateRoomCode(Exception):
    """模拟数据库唯一索引冲突。"""


# ── 内存版 Store ──────────────────────────────────────────────────────

class FakeStore:
    """``Store`` 协议的内存实现，行为与 ``MongoStore`` 保持一致。"""

    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self.rooms: dict[int, Room] = {}
        self.participants: dict[tuple[int, int], Participant] = {}
        self.messages: list[Message] = []
        self.codes: dict[str, int] = {}
        self._ids: dict[str, int] = {}
        self._tick = 0

    def _next_id(self, name: str) -> int:
        self._ids[name] = self._ids.get(name, 0) + 1
        return self._ids[name]

    def _now(self) -> datetime:
        # 单调递增的时间戳，保证排序稳定
        self._tick += 1
        return _EPOCH + timedelta(seconds=self._tick)

    def _summary(self, user_id: int) -> UserSummary:
        user = self.users.get(user_id)
        return UserSummary.of(user) if user else UserSummary.unknown(user_id)

    # ── 测试辅助 ──────────────────────────────────────────────────────

    def add_user(
        self,
        user_id: int,
        display_name: str | None = None,
        preferred_language: str = "en",
        role: str = "user",
    ) -> User:
        user = User(
            id=user_id,
            username=f"user{user_id}",
            display_name=display_name or f"User {user_id}",
            preferred_language=preferred_language,
            role=role,
        )
        self.users[user_id] = user
        return user

    def add_room(self, room_id: int, members: dict[int, str], code: str | None = None) -> Room:
        """直接写入一个房间及其成员（user_id → 语言），跳过房间码探测。"""
        room = Room(
            id=room_id,
            room_code=code or f"R{room_id:05d}",
            name=f"Room {room_id}",
            created_by=next(iter(members), 0),
            languages=sorted(set(members.values())) or ["en"],
            created_at=self._now(),
        )
        self.rooms[room_id] = room
        self.codes[room.room_code] = room_id
        self._ids["rooms"] = max(self._ids.get("rooms", 0), room_id)
        for user_id, language in members.items():
            self.participants[(room_id, user_id)] = Participant(
                room_id=room_id,
                user_id=user_id,
                language=language,
                joined_at=self._now(),
                user=self._summary(user_id),
            )
        return room

    # ── Store 协议 ────────────────────────────────────────────────────

    async def get_user_by_id(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    async def count_users(self) -> int:
        return len(self.users)

    async def get_room_by_id(self, room_id: int) -> Room | None:
        return self.rooms.get(room_id)

    async def get_room_by_code(self, room_code: str) -> Room | None:
        room_id = self.codes.get(room_code.upper())
        return self.rooms.get(room_id) if room_id is not None else None

    async def create_room(
        self, room_code: str, name: str, created_by: int, languages: list[str],
    ) -> Room:
        if room_code in self.codes:
            raise DuplicateRoomCode(room_code)
        room = Room(
            id=self._next_id("rooms"),
            room_code=room_code,
            name=name,
            created_by=created_by,
            languages=languages,
            created_at=self._now(),
        )
        self.rooms[room.id] = room
        self.codes[room_code] = room.id
        await self.join_room(room.id, created_by, languages[0])
        return room

    async def set_room_active(self, room_id: int, is_active: bool) -> None:
        room = self.rooms[room_id]
        self.rooms[room_id] = room.model_copy(update={"is_active": is_active})

    async def count_rooms(self) -> int:
        return len(self.rooms)

    async def get_user_rooms(self, user_id: int) -> list[RoomWithCount]:
        room_ids = [rid for (rid, uid) in self.participants if uid == user_id]
        result = []
        for rid in room_ids:
            room = self.rooms.get(rid)
            if room is None or not room.is_active:
                continue
            count = sum(1 for (r, _) in self.participants if r == rid)
            result.append(RoomWithCount(**room.model_dump(), participant_count=count))
        return sorted(result, key=lambda r: r.created_at, reverse=True)

    async def join_room(self, room_id: int, user_id: int, language: str) -> Participant:
        key = (room_id, user_id)
        if key not in self.participants:
            self.participants[key] = Participant(
                room_id=room_id,
                user_id=user_id,
                language=language,
                joined_at=self._now(),
                user=self._summary(user_id),
            )
        return self.participants[key]

    async def leave_room(self, room_id: int, user_id: int) -> None:
        self.participants.pop((room_id, user_id), None)

    async def is_user_in_room(self, room_id: int, user_id: int) -> bool:
        return (room_id, user_id) in self.participants

    async def get_room_participants(self, room_id: int) -> list[Participant]:
        members = [p for (rid, uid), p in self.participants.items() if rid == room_id]
        return sorted(
            (p for p in members if p.user_id in self.users),
            key=lambda p: p.joined_at,
        )

    async def update_participant_language(
        self, room_id: int, user_id: int, language: str,
    ) -> None:
        key = (room_id, user_id)
        if key in self.participants:
            self.participants[key] = self.participants[key].model_copy(
                update={"language": language},
            )

    async def create_message(
        self,
        room_id: int,
        sender_id: int,
        content: str,
        message_type: MessageKind,
        original_language: str | None,
        translated_content: dict[str, str],
    ) -> Message:
        message = Message(
            id=self._next_id("messages"),
            room_id=room_id,
            sender_id=sender_id,
            content=content,
            translated_content=dict(translated_content),
            original_language=original_language,
            message_type=message_type,
            created_at=self._now(),
        )
        self.messages.append(message)
        return message

    async def get_room_messages(self, room_id: int, limit: int = 50) -> list[MessageWithSender]:
        in_room = [m for m in self.messages if m.room_id == room_id][-limit:]
        return [
            MessageWithSender(**m.model_dump(), sender=self._summary(m.sender_id))
            for m in in_room
        ]


# ── 假连接 ────────────────────────────────────────────────────────────

def make_connection(connection_id: str) -> Connection:
    """创建一个底层 WebSocket 被 mock 掉的连接，发出的帧记录在 ``send_json`` 上。"""
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    return Connection(websocket, connection_id=connection_id)


def sent(connection: Connection, event: str | None = None) -> list[dict[str, Any]]:
    """返回连接收到的帧（可按事件名过滤）。"""
    frames = [call.args[0] for call in connection.websocket.send_json.call_args_list]
    if event is None:
        return frames
    return [f["data"] for f in frames if f["event"] == event]


def clear_sent(*connections: Connection) -> None:
    for connection in connections:
        connection.websocket.send_json.reset_mock()


# ── 测试环境 ──────────────────────────────────────────────────────────

class ChatHarness:
    """把进程级组件装配在一起，模拟一个运行中的聊天服务。"""

    def __init__(self, store: FakeStore, translator: MagicMock) -> None:
        self.store = store
        self.translator = translator
        self.presence = PresenceRegistry()
        self.broadcaster = RoomBroadcaster()
        self.coordinator = BroadcastCoordinator(store, translator, self.broadcaster)

    async def open(self, connection_id: str, user_id: int | None = None) -> RoomSession:
        """建立一条连接，给出 ``user_id`` 时顺带完成认证。"""
        session = RoomSession(
            make_connection(connection_id),
            presence=self.presence,
            broadcaster=self.broadcaster,
            store=self.store,
            coordinator=self.coordinator,
        )
        await session.connect()
        if user_id is not None:
            await session.authenticate(user_id)
        return session


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def mock_translator() -> MagicMock:
    """返回把每个目标语言译成 ``[<lang>] 原文`` 的 mock 翻译器。"""
    translator = MagicMock()

    async def _fake_translate(text: str, target_languages: list[str]) -> TranslationResult:
        return TranslationResult(
            detected_language="en",
            translations={lang: f"[{lang}] {text}" for lang in target_languages},
            confidence=0.95,
        )

    translator.translate = AsyncMock(side_effect=_fake_translate)
    return translator


@pytest.fixture()
def harness(store: FakeStore, mock_translator: MagicMock) -> ChatHarness:
    return ChatHarness(store, mock_translator)
