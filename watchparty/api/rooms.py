"""
watchparty.api.rooms
~~~~~~~~~~~~~~~~~~~~

房间 REST 接口 —— 房间码分配、房间查询、媒体上传与会话结束。

路由前缀 ``/api``。

端点:
  - ``POST /rooms``                        → 分配新房间码
  - ``GET  /rooms``                        → 获取活跃房间列表
  - ``GET  /rooms/{room_id}``              → 获取房间详情
  - ``GET  /rooms/{room_id}/history``      → 获取聊天历史
  - ``GET  /rooms/{room_id}/files``        → 列出房间媒体文件
  - ``POST /rooms/{room_id}/video``        → 上传视频（通知 media-changed）
  - ``POST /rooms/{room_id}/subtitles``    → 上传字幕（通知 subtitles-updated）
  - ``POST /rooms/{room_id}/end``          → 结束会话
"""

from pathlib import Path

from fastapi import APIRouter, Depends, File, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from watchparty.api.deps import get_coordinator, get_media_store
from watchparty.core.config import settings
from watchparty.core.errors import RoomNotFoundError, UnsupportedMediaError
from watchparty.core.logging import get_logger
from watchparty.core.rate_limit import limiter
from watchparty.schemas.api_response import ApiResponse
from watchparty.schemas.rooms import (
    EndSessionData,
    HistoryResponseData,
    RoomCodeData,
    RoomFilesData,
    RoomInfoData,
)
from watchparty.services.coordinator import RoomCoordinator
from watchparty.services.media import (
    ALLOWED_VIDEO_TYPES,
    SUBTITLE_EXTENSIONS,
    MediaStore,
    new_room_code,
    validate_room_code,
)

logger = get_logger(__name__)

router: APIRouter = APIRouter()


def _files(store: MediaStore, room_id: str) -> RoomFilesData:
    return RoomFilesData(
        video=store.find_video(room_id),
        subtitles=store.find_subtitles(room_id),
    )


# ── 房间管理端点 ──────────────────────────────────────────────────────

@router.post("/rooms", summary="分配新房间码")
@limiter.limit(settings.HTTP_RATE_LIMIT)
async def create_room(
    request: Request,
    coordinator: RoomCoordinator = Depends(get_coordinator),
    store: MediaStore = Depends(get_media_store),
) -> ApiResponse[RoomCodeData]:
    """分配一个未被占用的房间码。

    房间本身在第一位成员加入时才会创建。
    """
    while True:
        room_id = new_room_code(settings.ROOM_CODE_LENGTH)
        if coordinator.get_room(room_id) is None and not store.exists(room_id):
            break
    return ApiResponse.ok(data=RoomCodeData(room_id=room_id))


@router.get("/rooms", summary="获取活跃房间列表")
async def list_rooms(
    coordinator: RoomCoordinator = Depends(get_coordinator),
) -> ApiResponse[list[RoomInfoData]]:
    """返回所有有人在线的房间。"""
    return ApiResponse.ok(data=[room.info() for room in coordinator.list_rooms()])


@router.get("/rooms/{room_id}", summary="获取房间详情")
async def room_info(
    room_id: str,
    coordinator: RoomCoordinator = Depends(get_coordinator),
) -> ApiResponse[RoomInfoData]:
    """返回指定房间的成员、房管和字幕状态。

    Raises:
        RoomNotFoundError: 房间当前不存在（无人在线）。
    """
    room = coordinator.get_room(validate_room_code(room_id))
    if room is None:
        raise RoomNotFoundError(room_id)
    return ApiResponse.ok(data=room.info())


@router.get("/rooms/{room_id}/history", summary="获取聊天历史")
async def get_history(
    room_id: str,
    coordinator: RoomCoordinator = Depends(get_coordinator),
) -> ApiResponse[HistoryResponseData]:
    """按追加顺序返回聊天历史；房间不存在时返回空列表。"""
    messages = coordinator.history(validate_room_code(room_id))
    return ApiResponse.ok(
        data=HistoryResponseData(room_id=room_id, messages=messages, total=len(messages)),
    )


# ── 媒体端点 ──────────────────────────────────────────────────────────

@router.get("/rooms/{room_id}/files", summary="列出房间媒体文件")
async def list_files(
    room_id: str,
    store: MediaStore = Depends(get_media_store),
) -> ApiResponse[RoomFilesData]:
    """列出房间上传目录中的视频与字幕文件名。"""
    validate_room_code(room_id)
    files = await run_in_threadpool(_files, store, room_id)
    return ApiResponse.ok(data=files)


@router.post("/rooms/{room_id}/video", summary="上传视频")
@limiter.limit(settings.HTTP_RATE_LIMIT)
async def upload_video(
    request: Request,
    room_id: str,
    video: UploadFile = File(..., description="视频或音频文件"),
    coordinator: RoomCoordinator = Depends(get_coordinator),
    store: MediaStore = Depends(get_media_store),
) -> ApiResponse[RoomFilesData]:
    """保存视频（替换房间已有媒体），然后通知房间成员 ``media-changed``。

    Raises:
        UnsupportedMediaError: 文件类型不在白名单内。
        UploadTooLargeError: 文件超过 ``MAX_UPLOAD_BYTES``。
    """
    validate_room_code(room_id)
    if video.content_type not in ALLOWED_VIDEO_TYPES:
        raise UnsupportedMediaError(f"不支持的文件类型: {video.content_type}")

    await run_in_threadpool(
        store.save_video,
        room_id,
        video.filename or "video.mp4",
        video.file,
        settings.MAX_UPLOAD_BYTES,
    )
    notified = await coordinator.on_media_changed(room_id)
    logger.info("媒体已更新 | room=%s | 通知: %d", room_id, notified)

    files = await run_in_threadpool(_files, store, room_id)
    return ApiResponse.ok(data=files)


@router.post("/rooms/{room_id}/subtitles", summary="上传字幕")
@limiter.limit(settings.HTTP_RATE_LIMIT)
async def upload_subtitles(
    request: Request,
    room_id: str,
    subtitles: UploadFile = File(..., description=".srt 或 .vtt 字幕文件"),
    coordinator: RoomCoordinator = Depends(get_coordinator),
    store: MediaStore = Depends(get_media_store),
) -> ApiResponse[RoomFilesData]:
    """保存字幕（SRT 转为 WebVTT），然后通知房间成员 ``subtitles-updated``。"""
    validate_room_code(room_id)
    filename = subtitles.filename or ""
    if Path(filename).suffix.lower() not in SUBTITLE_EXTENSIONS:
        raise UnsupportedMediaError(f"不支持的字幕格式: {filename}")

    raw = await subtitles.read()
    await run_in_threadpool(store.save_subtitles, room_id, filename, raw)
    notified = await coordinator.on_subtitles_changed(room_id)
    logger.info("字幕已更新 | room=%s | 通知: %d", room_id, notified)

    files = await run_in_threadpool(_files, store, room_id)
    return ApiResponse.ok(data=files)


# ── 会话结束 ──────────────────────────────────────────────────────────

@router.post("/rooms/{room_id}/end", summary="结束会话")
async def end_session(
    room_id: str,
    coordinator: RoomCoordinator = Depends(get_coordinator),
    store: MediaStore = Depends(get_media_store),
) -> ApiResponse[EndSessionData]:
    """删除房间媒体目录，广播 ``session-ended`` 并销毁房间。"""
    validate_room_code(room_id)
    await run_in_threadpool(store.remove, room_id)
    notified = await coordinator.end_session(room_id)
    return ApiResponse.ok(data=EndSessionData(room_id=room_id, notified=notified))
