"""
tests.test_presence
~~~~~~~~~~~~~~~~~~~

PresenceRegistry + RoomBroadcaster 内存状态单元测试。
"""
from __future__ import annotations

import pytest

from app.schemas.events import OutboundEvent
from app.services.presence import PresenceRegistry
from app.services.room_broadcaster import RoomBroadcaster
from tests.conftest import make_connection, sent


class TestPresenceRegistry:
    """测试用户 ↔ 连接、连接 → 房间两张索引。"""

    def test_online_while_any_connection_remains(self) -> None:
        """同一用户多条连接时，只有最后一条注销后才离线。"""
        presence = PresenceRegistry()
        presence.mark_online(1, "c1")
        presence.mark_online(1, "c2")

        presence.mark_offline(1, "c1")
        assert presence.is_online(1)
        assert presence.connections_of(1) == {"c2"}

        presence.mark_offline(1, "c2")
        assert not presence.is_online(1)
        assert presence.online_user_count == 0

    def test_mark_online_is_idempotent(self) -> None:
        presence = PresenceRegistry()
        presence.mark_online(1, "c1")
        presence.mark_online(1, "c1")

        assert presence.connections_of(1) == {"c1"}

    def test_mark_offline_unknown_user_is_noop(self) -> None:
        presence = PresenceRegistry()
        presence.mark_offline(42, "c1")

        assert not presence.is_online(42)

    def test_forget_connection_returns_joined_rooms(self) -> None:
        presence = PresenceRegistry()
        presence.record_room_join("c1", 10)
        presence.record_room_join("c1", 20)
        presence.record_room_leave("c1", 10)

        assert presence.forget_connection("c1") == {20}
        assert presence.rooms_of("c1") == set()
        assert presence.forget_connection("c1") == set()

    def test_online_members_is_subset_of_participants(self) -> None:
        """在线但不在参与者列表里的用户不会出现在结果中。"""
        presence = PresenceRegistry()
        presence.mark_online(1, "c1")
        presence.mark_online(2, "c2")
        presence.mark_online(99, "c99")

        assert presence.online_members_of(10, [1, 2, 3]) == {1, 2}


class TestRoomBroadcaster:
    """测试房间分组与广播。"""

    @pytest.mark.asyncio
    async def test_emit_skips_excluded_connection(self) -> None:
        broadcaster = RoomBroadcaster()
        a, b = make_connection("a"), make_connection("b")
        broadcaster.register(a)
        broadcaster.register(b)
        broadcaster.add_to_room(1, "a")
        broadcaster.add_to_room(1, "b")

        delivered = await broadcaster.emit_to_room(
            1, OutboundEvent.USER_TYPING, {"userId": 1}, exclude="a",
        )

        assert delivered == 1
        assert sent(a) == []
        assert sent(b) == [{"event": "user_typing", "data": {"userId": 1}}]

    @pytest.mark.asyncio
    async def test_emit_to_other_room_not_delivered(self) -> None:
        broadcaster = RoomBroadcaster()
        a = make_connection("a")
        broadcaster.register(a)
        broadcaster.add_to_room(2, "a")

        assert await broadcaster.emit_to_room(1, OutboundEvent.ONLINE_USERS, {}) == 0
        assert sent(a) == []

    @pytest.mark.asyncio
    async def test_failed_send_counts_as_undelivered(self) -> None:
        """某条连接发送失败不影响其他连接。"""
        broadcaster = RoomBroadcaster()
        a, b = make_connection("a"), make_connection("b")
        a.websocket.send_json.side_effect = RuntimeError("socket closed")
        for conn in (a, b):
            broadcaster.register(conn)
            broadcaster.add_to_room(1, conn.connection_id)

        delivered = await broadcaster.emit_to_room(1, OutboundEvent.NEW_MESSAGE, {"id": 1})

        assert delivered == 1
        assert sent(b, "new_message") == [{"id": 1}]

    def test_unregister_removes_from_all_rooms(self) -> None:
        broadcaster = RoomBroadcaster()
        broadcaster.register(make_connection("a"))
        broadcaster.add_to_room(1, "a")
        broadcaster.add_to_room(2, "a")

        broadcaster.unregister("a")

        assert broadcaster.members(1) == set()
        assert broadcaster.members(2) == set()
        assert broadcaster.connection_count == 0
