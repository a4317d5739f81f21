"""
app.services.presence
~~~~~~~~~~~~~~~~~~~~~

进程内在线状态登记表 —— 纯内存状态，不做任何 I/O。

维护两张索引:
  - 用户 → 活跃连接集合（一个用户可同时有多个连接，集合非空即在线）
  - 连接 → 已加入房间集合（断线时据此清理）

所有方法都是同步的集合操作，单个事件内的登记更新不会被 ``await`` 打断。
实例在进程启动时创建、挂到 ``app.state`` 上，不使用模块级单例。
"""
from __future__ import annotations

from collections.abc import Iterable

from app.core.logging import get_logger

logger = get_logger(__name__)


class PresenceRegistry:
    """在线状态登记表。

    调用方负责保证传入的身份已通过认证，这里不做任何校验，也不抛异常。
    """

    def __init__(self) -> None:
        self._user_connections: dict[int, set[str]] = {}
        self._connection_rooms: dict[str, set[int]] = {}

    # ── 用户 ↔ 连接 ───────────────────────────────────────────────────

    def mark_online(self, user_id: int, connection_id: str) -> None:
        """登记一个活跃连接（幂等）。"""
        self._user_connections.setdefault(user_id, set()).add(connection_id)

    def mark_offline(self, user_id: int, connection_id: str) -> None:
        """注销一个连接；用户最后一个连接注销后即完全离线。"""
        connections = self._user_connections.get(user_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._user_connections[user_id]
            logger.debug("用户已离线 | user=%s", user_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self._user_connections.get(user_id))

    def connections_of(self, user_id: int) -> set[str]:
        return set(self._user_connections.get(user_id, ()))

    # ── 连接 → 房间（反向索引） ───────────────────────────────────────

    def record_room_join(self, connection_id: str, room_id: int) -> None:
        self._connection_rooms.setdefault(connection_id, set()).add(room_id)

    def record_room_leave(self, connection_id: str, room_id: int) -> None:
        rooms = self._connection_rooms.get(connection_id)
        if rooms is None:
            return
        rooms.discard(room_id)
        if not rooms:
            del self._connection_rooms[connection_id]

    def rooms_of(self, connection_id: str) -> set[int]:
        return set(self._connection_rooms.get(connection_id, ()))

    def forget_connection(self, connection_id: str) -> set[int]:
        """删除连接的反向索引，返回它加入过的房间。"""
        return self._connection_rooms.pop(connection_id, set())

    # ── 查询 ──────────────────────────────────────────────────────────

    def online_members_of(self, room_id: int, participant_user_ids: Iterable[int]) -> set[int]:
        """返回 ``participant_user_ids`` 中当前在线的用户。

        结果总是参与者的子集；复杂度 O(参与者数)，聊天室规模下足够。

        Args:
            room_id: 房间 ID（仅用于日志）。
            participant_user_ids: 房间参与者的用户 ID。
        """
        online = {uid for uid in participant_user_ids if self.is_online(uid)}
        logger.debug("房间在线成员 | room=%s | online=%d", room_id, len(online))
        return online

    @property
    def online_user_count(self) -> int:
        return len(self._user_connections)
