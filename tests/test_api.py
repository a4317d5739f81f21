"""
tests.test_api
~~~~~~~~~~~~~~

REST 接口与 ``/ws`` 端点的集成测试。

``TestClient`` 不以上下文管理器方式使用，因此 lifespan 不会执行（不连接
MongoDB、不创建 Gemini Client），进程级组件由 fixture 直接挂到 ``app.state``。
"""
from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.core.rate_limit import limiter
from app.main import app
from app.services.room_service import RoomService
from tests.conftest import ChatHarness


@pytest.fixture()
def client(harness: ChatHarness) -> Iterator[TestClient]:
    store = harness.store
    store.add_user(1, "Alice", preferred_language="en")
    store.add_user(2, "Bruno", preferred_language="es")
    store.add_user(9, "Root", role="admin")
    store.add_room(42, {1: "en", 2: "es"}, code="ABC234")

    app.state.store = store
    app.state.presence = harness.presence
    app.state.broadcaster = harness.broadcaster
    app.state.coordinator = harness.coordinator
    app.state.room_service = RoomService(store)
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = True


def _as(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


# ── REST ──────────────────────────────────────────────────────────────

class TestRoomsApi:
    """测试 /api 下的房间接口。"""

    def test_create_room(self, client: TestClient) -> None:
        resp = client.post("/api/rooms", json={"name": "Standup", "languages": ["fr"]}, headers=_as(1))

        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 200
        assert body["data"]["name"] == "Standup"
        assert len(body["data"]["roomCode"]) == 6
        assert body["data"]["createdBy"] == 1

    def test_missing_identity_is_401(self, client: TestClient) -> None:
        resp = client.get("/api/rooms")

        assert resp.status_code == 401
        assert resp.json() == {"code": 401, "data": None, "msg": "Not authenticated"}

    def test_join_by_code_then_list(self, client: TestClient) -> None:
        created = client.post("/api/rooms", json={"name": "Lunch"}, headers=_as(1)).json()["data"]

        joined = client.post(
            "/api/rooms/join", json={"roomCode": created["roomCode"].lower()}, headers=_as(2),
        )
        rooms = client.get("/api/rooms", headers=_as(2)).json()["data"]

        assert joined.status_code == 200
        assert joined.json()["data"]["id"] == created["id"]
        assert {r["id"]: r["participantCount"] for r in rooms} == {created["id"]: 2, 42: 2}

    def test_join_unknown_code_is_404(self, client: TestClient) -> None:
        resp = client.post("/api/rooms/join", json={"roomCode": "ZZZZZZ"}, headers=_as(1))

        assert resp.status_code == 404
        assert resp.json()["msg"] == "Room not found"

    def test_room_detail_for_non_member_is_403(self, client: TestClient) -> None:
        resp = client.get("/api/rooms/42", headers=_as(9))

        assert resp.status_code == 403
        assert resp.json()["msg"] == "Not a member of this room"

    def test_messages_history(self, client: TestClient, harness: ChatHarness) -> None:
        harness.store.messages.clear()

        resp = client.get("/api/rooms/42/messages", headers=_as(2))

        assert resp.status_code == 200
        assert resp.json()["data"] == []

    def test_update_language_and_leave(self, client: TestClient, harness: ChatHarness) -> None:
        resp = client.put("/api/rooms/42/language", json={"language": "pt"}, headers=_as(2))
        assert resp.json()["data"] == {"success": True}
        assert harness.store.participants[(42, 2)].language == "pt"

        resp = client.post("/api/rooms/42/leave", headers=_as(2))
        assert resp.json()["data"] == {"success": True}
        assert (42, 2) not in harness.store.participants

    def test_toggle_requires_admin(self, client: TestClient) -> None:
        assert client.post("/api/admin/rooms/42/toggle", headers=_as(1)).status_code == 403

        resp = client.post("/api/admin/rooms/42/toggle", headers=_as(9))

        assert resp.status_code == 200
        assert resp.json()["data"]["isActive"] is False

    def test_admin_stats(self, client: TestClient, harness: ChatHarness) -> None:
        harness.presence.mark_online(1, "conn-x")

        assert client.get("/api/admin/stats", headers=_as(1)).status_code == 403
        resp = client.get("/api/admin/stats", headers=_as(9))

        assert resp.status_code == 200
        assert resp.json()["data"] == {"totalUsers": 3, "totalRooms": 1, "onlineUsers": 1}

    def test_languages(self, client: TestClient) -> None:
        data = client.get("/api/languages").json()["data"]

        assert len(data) == 36
        assert {"code": "es", "name": "Spanish"} in data

    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ── WebSocket ─────────────────────────────────────────────────────────

class TestWebSocketEndpoint:
    """测试 /ws 端点的完整事件流。"""

    def test_chat_flow(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws_b:
            ws_b.send_json({"event": "authenticate", "data": {"userId": 2}})
            assert ws_b.receive_json() == {"event": "authenticated", "data": {"userId": 2}}
            ws_b.send_json({"event": "join_room", "data": {"roomId": 42}})
            assert ws_b.receive_json() == {
                "event": "online_users", "data": {"roomId": 42, "users": [2]},
            }

            with client.websocket_connect("/ws") as ws_a:
                ws_a.send_json({"event": "authenticate", "data": {"userId": 1}})
                assert ws_a.receive_json()["event"] == "authenticated"
                ws_a.send_json({"event": "join_room", "data": {"roomId": 42}})
                assert ws_a.receive_json() == {
                    "event": "online_users", "data": {"roomId": 42, "users": [1, 2]},
                }
                assert ws_b.receive_json() == {
                    "event": "user_joined",
                    "data": {"userId": 1, "displayName": "Alice", "roomId": 42},
                }
                assert ws_b.receive_json()["event"] == "online_users"

                ws_a.send_json({
                    "event": "send_message",
                    "data": {"roomId": 42, "content": "Hello"},
                })
                to_a = ws_a.receive_json()
                to_b = ws_b.receive_json()
                assert to_a == to_b
                assert to_a["event"] == "new_message"
                assert to_a["data"]["translatedContent"] == {"es": "[es] Hello"}

            assert ws_b.receive_json() == {
                "event": "user_left", "data": {"userId": 1, "roomId": 42},
            }
            assert ws_b.receive_json() == {
                "event": "online_users", "data": {"roomId": 42, "users": [2]},
            }

    def test_malformed_frame_keeps_connection_open(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            assert ws.receive_json() == {"event": "error", "data": {"message": "Malformed frame"}}

            ws.send_json({"event": "join_room", "data": {"roomId": 42}})
            assert ws.receive_json() == {
                "event": "error", "data": {"message": "Not authenticated"},
            }
