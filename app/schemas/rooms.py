"""
app.schemas.rooms
~~~~~~~~~~~~~~~~~

聊天室 REST 接口的请求/响应模型。
"""
from __future__ import annotations

from pydantic import Field

from app.schemas.chat import CamelModel


class CreateRoomRequest(CamelModel):
    """创建房间请求体。"""

    name: str = Field(..., min_length=1, max_length=100, description="房间名称")
    languages: list[str] | None = Field(
        default=None,
        min_length=1,
        description="房间预期使用的语言代码，第一个作为创建者的房间语言",
    )


class JoinRoomRequest(CamelModel):
    """通过加入码加入房间。"""

    room_code: str = Field(..., min_length=6, max_length=6, description="6 位房间码（不区分大小写）")
    language: str | None = Field(default=None, description="本房间使用的语言，缺省取用户偏好语言")


class UpdateLanguageRequest(CamelModel):
    """修改本人在某房间的语言。"""

    language: str = Field(..., min_length=2, max_length=8, description="语言代码")


class LanguageData(CamelModel):
    code: str = Field(..., description="ISO 639-1 语言代码")
    name: str = Field(..., description="语言英文名称")


class SuccessData(CamelModel):
    success: bool = True


class AdminStatsData(CamelModel):
    """管理员统计。``online_users`` 只统计本进程内的在线用户。"""

    total_users: int
    total_rooms: int
    online_users: int
