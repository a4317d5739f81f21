"""
app.services.room_broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间广播器 —— 维护每个房间的实时连接分组，并向分组广播事件。

分组只表示"这条连接此刻挂在这个房间上"，成员资格以 Store 为准，
分组本身从不创建成员关系。
"""
from __future__ import annotations

import asyncio
from typing import Any

from app.core.logging import get_logger
from app.schemas.events import OutboundEvent
from app.services.connection import Connection

logger = get_logger(__name__)


class RoomBroadcaster:
    """按房间分组的连接广播器（进程内单实例，挂在 ``app.state``）。"""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._groups: dict[int, set[str]] = {}

    # ── 连接注册 ──────────────────────────────────────────────────────

    def register(self, connection: Connection) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        """移除连接，并把它从所有房间分组中摘除。"""
        self._connections.pop(connection_id, None)
        for room_id in [rid for rid, members in self._groups.items() if connection_id in members]:
            self.remove_from_room(room_id, connection_id)

    # ── 房间分组 ──────────────────────────────────────────────────────

    def add_to_room(self, room_id: int, connection_id: str) -> None:
        """加入分组（幂等）。"""
        self._groups.setdefault(room_id, set()).add(connection_id)

    def remove_from_room(self, room_id: int, connection_id: str) -> None:
        members = self._groups.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        # 分组空了就把房间键也删掉
        if not members:
            del self._groups[room_id]

    def members(self, room_id: int) -> set[str]:
        return set(self._groups.get(room_id, ()))

    def in_room(self, room_id: int, connection_id: str) -> bool:
        return connection_id in self._groups.get(room_id, ())

    # ── 广播 ──────────────────────────────────────────────────────────

    async def emit_to_room(
        self,
        room_id: int,
        event: OutboundEvent,
        data: dict[str, Any],
        exclude: str | None = None,
    ) -> int:
        """向房间分组内的所有连接广播事件。

        Args:
            room_id: 目标房间。
            event: 出站事件名。
            data: 事件载荷（camelCase，可直接 JSON 序列化）。
            exclude: 需要跳过的连接 ID（通常是事件发起方）。

        Returns:
            成功送达的连接数。
        """
        targets = [
            self._connections[cid]
            for cid in self._groups.get(room_id, ())
            if cid != exclude and cid in self._connections
        ]
        if not targets:
            return 0

        results = await asyncio.gather(*(conn.send(event, data) for conn in targets))
        delivered = sum(1 for ok in results if ok)
        if delivered < len(targets):
            logger.warning(
                "房间广播部分失败 | room=%s | event=%s | %d/%d",
                room_id, event.value, delivered, len(targets),
            )
        return delivered

    @property
    def connection_count(self) -> int:
        return len(self._connections)
