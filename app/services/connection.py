"""
app.services.connection
~~~~~~~~~~~~~~~~~~~~~~~

单条 WebSocket 连接的封装 —— 连接 ID、认证身份与事件发送。

连接对象只在内存中存在，断开即销毁，从不持久化。
"""
from __future__ import annotations

import uuid
from typing import Any

from fastapi import WebSocket

from app.core.logging import get_logger
from app.schemas.events import OutboundEvent

logger = get_logger(__name__)


class Connection:
    """一条实时连接。

    Attributes:
        websocket: 底层 FastAPI WebSocket。
        connection_id: 进程内唯一的连接 ID（``conn-xxxxxxxx``）。
        user_id: 认证完成前为 ``None``。
        closed: 断线清理执行后置为 ``True``，迟到的事件处理据此放弃写入状态。
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self.websocket = websocket
        self.connection_id: str = connection_id or f"conn-{uuid.uuid4().hex[:8]}"
        self.user_id: int | None = None
        self.closed: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    async def accept(self) -> None:
        await self.websocket.accept()

    async def send(self, event: OutboundEvent, data: dict[str, Any]) -> bool:
        """向本连接发送一个事件帧。

        Returns:
            是否发送成功。连接已断开时只记录日志，不抛异常。
        """
        try:
            await self.websocket.send_json({"event": event.value, "data": data})
            return True
        except Exception as e:
            logger.warning(
                "事件发送失败 | conn=%s | event=%s | err=%s",
                self.connection_id, event.value, e,
            )
            return False

    def __repr__(self) -> str:
        return f"Connection({self.connection_id!r}, user_id={self.user_id!r})"
