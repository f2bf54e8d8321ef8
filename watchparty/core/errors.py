"""
watchparty.core.errors
~~~~~~~~~~~~~~~~~~~~~~

业务异常定义。HTTP 层通过 ``main`` 中注册的处理器把它们统一转换为
``ApiResponse.from_error()``；WebSocket 协调层不抛出这些异常，一律静默丢弃。
"""
from __future__ import annotations


class WatchPartyError(Exception):
    """所有业务异常的基类。

    Attributes:
        status_code: 对应的 HTTP 状态码。
        message: 人类可读的错误信息。
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RoomNotFoundError(WatchPartyError):
    status_code = 404

    def __init__(self, room_id: str) -> None:
        super().__init__(f"房间不存在: {room_id}")
        self.room_id = room_id


class InvalidRoomCodeError(WatchPartyError):
    status_code = 400

    def __init__(self, room_id: str) -> None:
        super().__init__(f"非法的房间码: {room_id!r}")
        self.room_id = room_id


class UnsupportedMediaError(WatchPartyError):
    status_code = 415


class UploadTooLargeError(WatchPartyError):
    status_code = 413


class InvalidFilenameError(WatchPartyError):
    status_code = 400
