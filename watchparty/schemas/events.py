"""
watchparty.schemas.events
~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 事件协议。

每一帧都是 ``{"event": <事件名>, "data": <负载>}`` 形式的 JSON 对象。
负载字段在线上使用 camelCase（``roomId``、``requesterId`` 等），
Python 侧使用 snake_case，通过 pydantic alias 互转。
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InboundEvent(str, Enum):
    """客户端 → 服务端事件。"""

    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    CHAT_MESSAGE = "chat-message"
    VIDEO_ACTION = "video-action"
    SUBTITLE_CHANGE = "subtitle-change"
    REQUEST_CHANGE = "request-change"
    GRANT_CHANGE = "grant-change"
    DENY_REQUEST = "deny-request"


class OutboundEvent(str, Enum):
    """服务端 → 客户端事件。"""

    CHAT_HISTORY = "chat-history"
    CHAT_MESSAGE = "chat-message"
    USERS_UPDATED = "users-updated"
    ADMIN_STATUS = "admin-status"
    SUBTITLE_CHANGE = "subtitle-change"
    VIDEO_ACTION = "video-action"
    CHANGE_REQUEST = "change-request"
    CHANGE_GRANTED = "change-granted"
    REQUEST_DENIED = "request-denied"
    SESSION_ENDED = "session-ended"
    MEDIA_CHANGED = "media-changed"
    SUBTITLES_UPDATED = "subtitles-updated"
    RATE_LIMITED = "rate-limited"


class WireModel(BaseModel):
    """线上负载基类：按 alias 解析与序列化。"""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ── 上行负载 ──────────────────────────────────────────────────────────

class RoomScoped(WireModel):
    room_id: str = Field(..., alias="roomId", min_length=1, max_length=64)


class JoinRoomPayload(RoomScoped):
    name: str = Field(..., description="自报的显示名，可为空串")


class LeaveRoomPayload(RoomScoped):
    pass


class ChatMessagePayload(RoomScoped):
    msg: str = ""


class VideoActionPayload(RoomScoped):
    action: Literal["play", "pause", "seek"]
    time: float | None = Field(default=None, description="播放位置（秒），seek 必填")

    @model_validator(mode="after")
    def _seek_needs_time(self) -> VideoActionPayload:
        if self.action == "seek" and self.time is None:
            raise ValueError("seek 事件必须携带 time")
        return self


class SubtitleChangePayload(RoomScoped):
    subtitle: str | None = Field(default=None, description="字幕标识或标签，None 表示关闭")


class RequestChangePayload(RoomScoped):
    name: str | None = None


class GrantChangePayload(RoomScoped):
    requester_id: str = Field(..., alias="requesterId", min_length=1)


class DenyRequestPayload(RoomScoped):
    user_id: str = Field(..., alias="userId", min_length=1)


INBOUND_PAYLOADS: dict[InboundEvent, type[RoomScoped]] = {
    InboundEvent.JOIN_ROOM: JoinRoomPayload,
    InboundEvent.LEAVE_ROOM: LeaveRoomPayload,
    InboundEvent.CHAT_MESSAGE: ChatMessagePayload,
    InboundEvent.VIDEO_ACTION: VideoActionPayload,
    InboundEvent.SUBTITLE_CHANGE: SubtitleChangePayload,
    InboundEvent.REQUEST_CHANGE: RequestChangePayload,
    InboundEvent.GRANT_CHANGE: GrantChangePayload,
    InboundEvent.DENY_REQUEST: DenyRequestPayload,
}


# ── 下行负载 ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(WireModel):
    """聊天记录中的一条消息（含系统消息）。"""

    speaker_name: str = Field(..., alias="speakerName")
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    is_system_message: bool = Field(default=False, alias="isSystemMessage")


class UserData(WireModel):
    name: str


class AdminStatusData(WireModel):
    is_admin_user: bool = Field(..., alias="isAdminUser")


class SubtitleData(WireModel):
    subtitle: str | None


class VideoActionData(WireModel):
    action: Literal["play", "pause", "seek"]
    time: float | None


class ChangeRequestData(WireModel):
    from_: str | None = Field(..., alias="from")
    requester_id: str = Field(..., alias="requesterId")


class RateLimitedData(WireModel):
    event: str
    retry_after: float = Field(..., alias="retryAfter")
