"""
app.services.room_service
~~~~~~~~~~~~~~~~~~~~~~~~~

聊天室业务服务 —— 建房、凭房间码加入、退出、语言切换、历史回看。

成员关系只在这里（REST 流程）建立；实时层只会把连接挂到已有的成员关系上。
"""
from __future__ import annotations

import secrets

from app.core.config import settings
from app.core.errors import NotRoomMemberError, RoomDisabledError, RoomNotFoundError
from app.core.logging import get_logger
from app.db.store import Store
from app.schemas.chat import MessageWithSender, Room, RoomDetail, RoomWithCount, User

logger = get_logger(__name__)

# 去掉了容易混淆的 0 / 1 / I / O
ROOM_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_room_code(length: int | None = None) -> str:
    """生成一个随机房间码（大写字母 + 数字）。"""
    size = length or settings.ROOM_CODE_LENGTH
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(size))


class RoomService:
    """聊天室业务服务。

    Attributes:
        store: 持久化仓库。
        max_code_attempts: 房间码碰撞探测的最大次数。
    """

    def __init__(self, store: Store, max_code_attempts: int | None = None) -> None:
        self.store = store
        self.max_code_attempts: int = max_code_attempts or settings.ROOM_CODE_MAX_ATTEMPTS

    async def _unique_room_code(self) -> str:
        """探测 Store 寻找未占用的房间码。

        重试耗尽时仍返回最后一次生成的码（未经探测），由数据库唯一索引兜底。
        """
        code = generate_room_code()
        for _ in range(self.max_code_attempts):
            if await self.store.get_room_by_code(code) is None:
                return code
            code = generate_room_code()

        logger.warning(
            "房间码碰撞重试已耗尽，使用未经探测的房间码 | attempts=%d | code=%s",
            self.max_code_attempts, code,
        )
        return code

    async def create_room(self, user: User, name: str, languages: list[str] | None = None) -> Room:
        """创建房间，创建者以第一个语言自动成为参与者。"""
        room_languages = languages or [settings.DEFAULT_LANGUAGE]
        code = await self._unique_room_code()
        room = await self.store.create_room(code, name, user.id, room_languages)
        logger.info("房间已创建 | room=%s | code=%s | by=%s", room.id, room.room_code, user.id)
        return room

    async def join_by_code(self, user: User, room_code: str, language: str | None = None) -> Room:
        """凭房间码加入房间（幂等，重复加入返回同一房间）。

        Raises:
            RoomNotFoundError: 房间码不存在。
            RoomDisabledError: 房间已被管理员停用。
        """
        room = await self.store.get_room_by_code(room_code.upper())
        if room is None:
            raise RoomNotFoundError()
        if not room.is_active:
            raise RoomDisabledError()

        member_language = language or user.preferred_language or settings.DEFAULT_LANGUAGE
        await self.store.join_room(room.id, user.id, member_language)
        logger.info("用户加入房间 | room=%s | user=%s | lang=%s", room.id, user.id, member_language)
        return room

    async def list_user_rooms(self, user: User) -> list[RoomWithCount]:
        return await self.store.get_user_rooms(user.id)

    async def get_room_detail(self, room_id: int, user: User) -> RoomDetail:
        await self._require_member(room_id, user)
        room = await self.store.get_room_by_id(room_id)
        if room is None:
            raise RoomNotFoundError()
        participants = await self.store.get_room_participants(room_id)
        return RoomDetail(**room.model_dump(), participants=participants)

    async def get_history(
        self, room_id: int, user: User, limit: int | None = None,
    ) -> list[MessageWithSender]:
        """最近的消息（正序）。仅房间成员可见。"""
        await self._require_member(room_id, user)
        return await self.store.get_room_messages(
            room_id, limit=limit or settings.MESSAGE_HISTORY_LIMIT,
        )

    async def leave(self, room_id: int, user: User) -> None:
        await self.store.leave_room(room_id, user.id)
        logger.info("用户退出房间 | room=%s | user=%s", room_id, user.id)

    async def update_language(self, room_id: int, user: User, language: str) -> None:
        await self._require_member(room_id, user)
        await self.store.update_participant_language(room_id, user.id, language)

    async def toggle_room_active(self, room_id: int) -> Room:
        """管理员启用/停用房间，返回更新后的房间。"""
        room = await self.store.get_room_by_id(room_id)
        if room is None:
            raise RoomNotFoundError()
        await self.store.set_room_active(room_id, not room.is_active)
        logger.info("房间状态已切换 | room=%s | active=%s", room_id, not room.is_active)
        return room.model_copy(update={"is_active": not room.is_active})

    async def _require_member(self, room_id: int, user: User) -> None:
        # 非成员一律返回 403，不区分房间是否存在
        if not await self.store.is_user_in_room(room_id, user.id):
            raise NotRoomMemberError()
