"""
app.api.rooms
~~~~~~~~~~~~~

聊天室 REST 接口 —— 建房 / 加入 / 退出 / 语言切换 / 历史回看。

路由前缀 ``/api``，所有响应统一包装为 ``ApiResponse``。

端点:
  - ``POST /rooms``                    → 创建房间
  - ``POST /rooms/join``               → 凭房间码加入
  - ``GET  /rooms``                    → 我参与的房间列表
  - ``GET  /rooms/{room_id}``          → 房间详情（含参与者）
  - ``GET  /rooms/{room_id}/messages`` → 历史消息
  - ``POST /rooms/{room_id}/leave``    → 退出房间
  - ``PUT  /rooms/{room_id}/language`` → 修改本人在该房间的语言
  - ``GET  /languages``                → 支持的语言列表
  - ``GET  /admin/stats``              → 管理员统计（用户数 / 房间数 / 在线数）
  - ``POST /admin/rooms/{room_id}/toggle`` → 管理员启用/停用房间
"""
from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import (
    get_admin_user,
    get_current_user,
    get_presence,
    get_room_service,
    get_store,
)
from app.core.languages import get_supported_languages
from app.core.rate_limit import limiter
from app.db.store import Store
from app.schemas.api_response import ApiResponse
from app.schemas.chat import MessageWithSender, Room, RoomDetail, RoomWithCount, User
from app.schemas.rooms import (
    AdminStatsData,
    CreateRoomRequest,
    JoinRoomRequest,
    LanguageData,
    SuccessData,
    UpdateLanguageRequest,
)
from app.services.presence import PresenceRegistry
from app.services.room_service import RoomService

router: APIRouter = APIRouter()


# ── 房间管理端点 ──────────────────────────────────────────────────────

@router.post("/rooms", summary="创建房间", status_code=201, response_model=ApiResponse[Room])
@limiter.limit("5/second")
async def create_room(
    request: Request,
    body: CreateRoomRequest,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """创建房间并生成 6 位加入码，创建者自动成为参与者。"""
    room = await service.create_room(user, body.name, body.languages)
    return ApiResponse.ok(data=room)


@router.post("/rooms/join", summary="凭房间码加入", response_model=ApiResponse[Room])
@limiter.limit("5/second")
async def join_room(
    request: Request,
    body: JoinRoomRequest,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """凭房间码加入房间。重复加入是幂等的。"""
    room = await service.join_by_code(user, body.room_code, body.language)
    return ApiResponse.ok(data=room)


@router.get("/rooms", summary="我参与的房间", response_model=ApiResponse[list[RoomWithCount]])
@limiter.limit("10/second")
async def list_rooms(
    request: Request,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """返回当前用户参与的所有启用中的房间（含参与人数）。"""
    rooms = await service.list_user_rooms(user)
    return ApiResponse.ok(data=rooms)


@router.get("/rooms/{room_id}", summary="房间详情", response_model=ApiResponse[RoomDetail])
async def room_detail(
    room_id: int,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """返回房间信息及参与者列表，仅成员可见。"""
    detail = await service.get_room_detail(room_id, user)
    return ApiResponse.ok(data=detail)


@router.post("/rooms/{room_id}/leave", summary="退出房间", response_model=ApiResponse[SuccessData])
async def leave_room(
    room_id: int,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    await service.leave(room_id, user)
    return ApiResponse.ok(data=SuccessData())


@router.put(
    "/rooms/{room_id}/language",
    summary="修改房间语言",
    response_model=ApiResponse[SuccessData],
)
async def update_language(
    room_id: int,
    body: UpdateLanguageRequest,
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """修改本人在该房间接收译文的语言，之后的消息按新语言翻译。"""
    await service.update_language(room_id, user, body.language)
    return ApiResponse.ok(data=SuccessData())


# ── 历史回看端点 ──────────────────────────────────────────────────────

@router.get(
    "/rooms/{room_id}/messages",
    summary="获取历史消息",
    response_model=ApiResponse[list[MessageWithSender]],
)
@limiter.limit("10/second")
async def get_messages(
    request: Request,
    room_id: int,
    limit: int | None = Query(None, ge=1, le=500, description="最多返回条数"),
    user: User = Depends(get_current_user),
    service: RoomService = Depends(get_room_service),
):
    """获取房间最近的消息（按时间正序），译文随消息一并返回。

    Args:
        request: FastAPI Request 对象（用于限流判断）。
        room_id: 房间 ID。
        limit: 最多返回条数，缺省读取 ``settings.MESSAGE_HISTORY_LIMIT``。
    """
    messages = await service.get_history(room_id, user, limit=limit)
    return ApiResponse.ok(data=messages)


# ── 其他 ──────────────────────────────────────────────────────────────

@router.get("/languages", summary="支持的语言", response_model=ApiResponse[list[LanguageData]])
async def list_languages():
    return ApiResponse.ok(data=[LanguageData(**lang) for lang in get_supported_languages()])


@router.post(
    "/admin/rooms/{room_id}/toggle",
    summary="启用/停用房间",
    response_model=ApiResponse[Room],
)
async def toggle_room(
    room_id: int,
    _admin: User = Depends(get_admin_user),
    service: RoomService = Depends(get_room_service),
):
    room = await service.toggle_room_active(room_id)
    return ApiResponse.ok(data=room)


@router.get("/admin/stats", summary="管理员统计", response_model=ApiResponse[AdminStatsData])
async def admin_stats(
    _admin: User = Depends(get_admin_user),
    store: Store = Depends(get_store),
    presence: PresenceRegistry = Depends(get_presence),
):
    stats = AdminStatsData(
        total_users=await store.count_users(),
        total_rooms=await store.count_rooms(),
        online_users=presence.online_user_count,
    )
    return ApiResponse.ok(data=stats)
