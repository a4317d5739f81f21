"""
app.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~

REST 接口统一应答体。实时通道（WebSocket）不使用这个包装，
它的帧格式见 ``app.schemas.events``。
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from app.core.errors import ChatError

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{"code": 200, "data": {...}, "msg": "success"}``

    ``code`` 与 HTTP 状态码保持一致；失败时 ``data`` 为 ``null``。
    """

    code: int = Field(default=200, description="状态码，与 HTTP 状态码一致")
    data: T | None = Field(default=None, description="业务数据")
    msg: str = Field(default="success", description="状态消息")

    @property
    def is_success(self) -> bool:
        return 200 <= self.code < 300

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        return cls(code=200, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        return cls(code=code, data=data, msg=msg)

    @classmethod
    def from_error(cls, exc: ChatError) -> ApiResponse[Any]:
        """业务异常 → 失败应答，状态码取自异常本身。"""
        return cls.fail(msg=exc.message, code=exc.status_code)
