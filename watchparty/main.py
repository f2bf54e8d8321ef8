"""
watchparty.main
~~~~~~~~~~~~~~~

FastAPI 应用入口 —— 注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.responses import Response
from starlette.types import Scope

from watchparty.api import rooms, ws
from watchparty.core.config import settings
from watchparty.core.errors import WatchPartyError
from watchparty.core.logging import get_logger, setup_logging
from watchparty.core.rate_limit import WebSocketRateLimiter, limiter
from watchparty.schemas.api_response import ApiResponse
from watchparty.services.coordinator import RoomCoordinator
from watchparty.services.media import MediaStore

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


class UploadStaticFiles(StaticFiles):
    """上传目录静态文件。房间媒体会被整体替换，禁止客户端缓存旧文件。"""

    async def get_response(self, path: str, scope: Scope) -> Response:
        response = await super().get_response(path, scope)
        response.headers["Cache-Control"] = "no-store"
        return response


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    store = MediaStore(settings.UPLOAD_DIR)
    store.ensure_root()
    app.state.media_store = store
    app.state.coordinator = RoomCoordinator(
        enforce_admin_grants=settings.ENFORCE_ADMIN_GRANTS,
        send_timeout=settings.WS_SEND_TIMEOUT,
    )
    app.state.chat_limiter = WebSocketRateLimiter(
        interval_seconds=settings.CHAT_RATE_LIMIT_INTERVAL,
    )
    logger.info(
        "🚀 应用已启动 | env=%s | debug=%s | log_level=%s | uploads=%s",
        settings.ENVIRONMENT,
        settings.debug,
        settings.effective_log_level,
        store.root,
    )
    yield
    # ── 关闭 ──
    await app.state.coordinator.shutdown()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="同步观影房间协调服务",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS 中间件 ──────────────────────────────────────────────────────
if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(rooms.router, prefix="/api", tags=["Rooms & Media"])
app.include_router(ws.router, tags=["WebSocket Events"])
# 目录在 lifespan 中创建
app.mount(
    "/uploads",
    UploadStaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


# ── 异常处理器 ────────────────────────────────────────────────────────

@app.exception_handler(WatchPartyError)
async def watchparty_exception_handler(request: Request, exc: WatchPartyError) -> JSONResponse:
    """业务异常 → 对应状态码 + ``ApiResponse.from_error()``。"""
    logger.info("请求失败: %s %s -> %s", request.method, request.url.path, exc.message)
    response = ApiResponse.from_error(exc)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 500 应答信封。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "服务器内部错误"
    response = ApiResponse.internal_error(detail)
    return JSONResponse(status_code=500, content=response.model_dump())


@app.get("/health", tags=["System"])
async def health_check(request: Request) -> JSONResponse:
    """验证服务是否正常运行。"""
    coordinator: RoomCoordinator = request.app.state.coordinator
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "debug": settings.debug,
            "rooms": len(coordinator.registry),
            "connections": coordinator.connections.online_count,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "watchparty.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
