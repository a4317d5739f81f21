"""
app.api.ws
~~~~~~~~~~

WebSocket 实时聊天接口。

提供 ``/ws`` 端点。每帧均为 ``{"event": ..., "data": {...}}`` JSON；
连接建立后需先发送 ``authenticate``，再 ``join_room`` 挂到房间上。

并发模型：接收循环只负责读帧，每个入站事件交给独立的 asyncio 任务处理，
慢的翻译调用只会拖慢那一条消息，不会阻塞同一连接上的其他事件。
"""
from __future__ import annotations

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.core.logging import connection_id_ctx_var, get_logger
from app.schemas.events import EventFrame, OutboundEvent
from app.services.connection import Connection
from app.services.room_session import RoomSession

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket 多语言聊天端点。

    入站事件: ``authenticate`` / ``join_room`` / ``leave_room`` /
    ``send_message`` / ``typing``。

    出站事件: ``authenticated`` / ``error`` / ``user_joined`` / ``user_left`` /
    ``online_users`` / ``new_message`` / ``user_typing``。
    """
    state = websocket.app.state
    connection = Connection(websocket)
    token = connection_id_ctx_var.set(connection.connection_id)
    session = RoomSession(
        connection,
        presence=state.presence,
        broadcaster=state.broadcaster,
        store=state.store,
        coordinator=state.coordinator,
    )
    # 持有任务引用，防止事件处理任务在完成前被 GC
    pending: set[asyncio.Task[None]] = set()

    try:
        await session.connect()
        while True:
            raw: str = await websocket.receive_text()
            try:
                frame = EventFrame.model_validate_json(raw)
            except ValidationError:
                await connection.send(OutboundEvent.ERROR, {"message": "Malformed frame"})
                continue

            task = asyncio.create_task(session.dispatch(frame))
            pending.add(task)
            task.add_done_callback(pending.discard)

    except WebSocketDisconnect:
        pass  # 正常断开
    except Exception as e:
        logger.error("WebSocket 异常: %s", e, exc_info=True)
    finally:
        await session.disconnect()
        connection_id_ctx_var.reset(token)
