"""
app.core.errors
~~~~~~~~~~~~~~~

业务异常定义。

服务层只抛出这些异常，由 ``app.main`` 中注册的异常处理器统一转换为
``ApiResponse.fail()`` 格式。只用于 REST 接口：WebSocket 事件的错误文案
由 ``RoomSession`` 直接回发，不经过这些异常。
"""
from __future__ import annotations


class ChatError(Exception):
    """所有业务异常的基类。

    Attributes:
        status_code: 对应的 HTTP 状态码。
        message: 可直接展示给客户端的错误描述。
    """

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(ChatError):
    status_code = 401
    default_message = "Not authenticated"


class PermissionDeniedError(ChatError):
    status_code = 403
    default_message = "Admin access required"


class RoomNotFoundError(ChatError):
    status_code = 404
    default_message = "Room not found"


class RoomDisabledError(ChatError):
    status_code = 403
    default_message = "Room is disabled"


class NotRoomMemberError(ChatError):
    status_code = 403
    default_message = "Not a member of this room"
