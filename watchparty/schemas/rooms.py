"""
watchparty.schemas.rooms
~~~~~~~~~~~~~~~~~~~~~~~~

房间相关的 REST 响应模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from watchparty.schemas.events import ChatMessage


class RoomCodeData(BaseModel):
    """新分配的房间码。"""

    room_id: str = Field(..., description="房间码，首次有人加入时才真正创建房间")


class RoomInfoData(BaseModel):
    """房间摘要信息。"""

    room_id: str = Field(..., description="房间唯一标识")
    member_count: int = Field(..., description="当前在线人数")
    users: list[str] = Field(..., description="在线成员显示名")
    admin: str | None = Field(..., description="房管显示名")
    current_subtitle: str | None = Field(default=None, description="当前字幕选择")


class RoomFilesData(BaseModel):
    """房间上传目录中的媒体文件。"""

    video: str | None = Field(default=None, description="视频文件名")
    subtitles: str | None = Field(default=None, description="字幕文件名")


class HistoryResponseData(BaseModel):
    """聊天历史响应数据。"""

    room_id: str = Field(..., description="房间 ID")
    messages: list[ChatMessage] = Field(..., description="按追加顺序排列的消息")
    total: int = Field(..., description="消息条数")


class EndSessionData(BaseModel):
    """结束会话结果。"""

    room_id: str = Field(..., description="房间 ID")
    notified: int = Field(..., description="收到 session-ended 的连接数")
