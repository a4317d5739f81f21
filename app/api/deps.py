"""
app.api.deps
~~~~~~~~~~~~

FastAPI 依赖 —— 从 ``app.state`` 取出进程级组件，并解析调用者身份。

用户身份由外部 AuthService 完成认证后通过 ``X-User-Id`` 请求头传入。
"""
from __future__ import annotations

from fastapi import Depends, Header, Request

from app.core.errors import AuthenticationError, PermissionDeniedError
from app.db.store import Store
from app.schemas.chat import User
from app.services.presence import PresenceRegistry
from app.services.room_service import RoomService


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_room_service(request: Request) -> RoomService:
    return request.app.state.room_service


def get_presence(request: Request) -> PresenceRegistry:
    return request.app.state.presence


async def get_current_user(
    x_user_id: int | None = Header(default=None),
    store: Store = Depends(get_store),
) -> User:
    """解析当前用户。缺少请求头或用户不存在时返回 401。"""
    if x_user_id is None:
        raise AuthenticationError()
    user = await store.get_user_by_id(x_user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise PermissionDeniedError()
    return user
