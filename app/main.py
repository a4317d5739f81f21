"""
app.main
~~~~~~~~

聊天后端入口：组装进程级组件、挂载 REST 与 WebSocket 路由。

在线状态、房间分组、Store 与翻译器都在 lifespan 中创建一次，放在
``app.state`` 上供依赖注入和 ``/ws`` 端点共享，不使用模块级单例。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api import rooms, ws
from app.core.config import settings
from app.core.errors import ChatError
from app.core.logging import get_logger, setup_logging
from app.core.rate_limit import limiter
from app.db import close_mongo, connect_mongo
from app.db.mongo_store import MongoStore
from app.llm.gemini_translator import GeminiTranslator
from app.schemas.api_response import ApiResponse
from app.services.broadcast import BroadcastCoordinator
from app.services.presence import PresenceRegistry
from app.services.room_broadcaster import RoomBroadcaster
from app.services.room_service import RoomService

# 其他模块的 logger 依赖这里先完成配置
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时连接 MongoDB 并装配聊天组件，关闭时释放连接池。"""
    store = MongoStore(await connect_mongo())
    broadcaster = RoomBroadcaster()
    state = app.state
    state.store = store
    state.presence = PresenceRegistry()
    state.broadcaster = broadcaster
    state.coordinator = BroadcastCoordinator(store, GeminiTranslator(), broadcaster)
    state.room_service = RoomService(store)
    logger.info(
        "🚀 聊天服务已就绪 | env=%s | model=%s | log_level=%s",
        settings.ENVIRONMENT, settings.GEMINI_MODEL, settings.effective_log_level,
    )

    yield

    await close_mongo()
    logger.info("👋 聊天服务已停止 | 剩余连接: %d", broadcaster.connection_count)


app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="多语言实时聊天：房间、在线状态与消息翻译广播",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

# slowapi 从 app.state 读取限流器
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=not settings.is_prod,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)

app.include_router(rooms.router, prefix="/api", tags=["Rooms"])
app.include_router(ws.router, tags=["Realtime"])


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    logger.info("业务异常 | %s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.from_error(exc).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底：统一转换为 500 的 ``ApiResponse``，prod 环境不暴露异常详情。"""
    logger.error("未处理异常 | %s %s -> %s", request.method, request.url.path, exc, exc_info=True)
    msg = "Internal server error" if settings.is_prod else str(exc)
    return JSONResponse(status_code=500, content=ApiResponse.fail(msg=msg).model_dump())


@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """存活检查，附带当前在线用户数与连接数。"""
    state = request.app.state
    presence: PresenceRegistry | None = getattr(state, "presence", None)
    broadcaster: RoomBroadcaster | None = getattr(state, "broadcaster", None)
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "version": settings.VERSION,
            "onlineUsers": presence.online_user_count if presence else 0,
            "connections": broadcaster.connection_count if broadcaster else 0,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.debug,
        log_level=settings.effective_log_level.lower(),
    )
