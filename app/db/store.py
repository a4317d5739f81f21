"""
app.db.store
~~~~~~~~~~~~

持久化层契约。

实时核心（``RoomSession`` / ``BroadcastCoordinator``）和 REST 服务层只依赖
这个协议，不关心底层是 MongoDB 还是测试用的内存实现。
"""
from __future__ import annotations

from typing import Protocol

from app.schemas.chat import (
    Message,
    MessageKind,
    MessageWithSender,
    Participant,
    Room,
    RoomWithCount,
    User,
)


class Store(Protocol):
    """用户 / 房间 / 参与者 / 消息的异步 CRUD。"""

    # ── 用户 ──────────────────────────────────────────────────────────
    async def get_user_by_id(self, user_id: int) -> User | None: ...

    async def count_users(self) -> int: ...

    # ── 房间 ──────────────────────────────────────────────────────────
    async def get_room_by_id(self, room_id: int) -> Room | None: ...

    async def get_room_by_code(self, room_code: str) -> Room | None: ...

    async def create_room(
        self, room_code: str, name: str, created_by: int, languages: list[str],
    ) -> Room:
        """创建房间，并把创建者以 ``languages[0]`` 加入为参与者。"""
        ...

    async def set_room_active(self, room_id: int, is_active: bool) -> None: ...

    async def count_rooms(self) -> int:
        """全部房间数（含已停用）。"""
        ...

    async def get_user_rooms(self, user_id: int) -> list[RoomWithCount]: ...

    # ── 参与者 ────────────────────────────────────────────────────────
    async def join_room(self, room_id: int, user_id: int, language: str) -> Participant:
        """幂等：已是成员时返回已有的成员关系。"""
        ...

    async def leave_room(self, room_id: int, user_id: int) -> None: ...

    async def is_user_in_room(self, room_id: int, user_id: int) -> bool: ...

    async def get_room_participants(self, room_id: int) -> list[Participant]: ...

    async def update_participant_language(
        self, room_id: int, user_id: int, language: str,
    ) -> None: ...

    # ── 消息 ──────────────────────────────────────────────────────────
    async def create_message(
        self,
        room_id: int,
        sender_id: int,
        content: str,
        message_type: MessageKind,
        original_language: str | None,
        translated_content: dict[str, str],
    ) -> Message: ...

    async def get_room_messages(self, room_id: int, limit: int = 50) -> list[MessageWithSender]:
        """最近 ``limit`` 条消息，按时间正序。"""
        ...
