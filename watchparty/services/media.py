"""
watchparty.services.media
~~~~~~~~~~~~~~~~~~~~~~~~~

房间媒体存储 —— 每个房间在 ``UPLOAD_DIR`` 下有一个子目录，存放视频与字幕。

房间当前的视频不记录在内存状态里，而是每次按需列目录得到。
本模块全部为同步文件 IO，路由层通过 ``run_in_threadpool`` 调用。
"""
from __future__ import annotations

import re
import secrets
import shutil
import string
from pathlib import Path
from typing import BinaryIO

from watchparty.core.errors import (
    InvalidFilenameError,
    InvalidRoomCodeError,
    UploadTooLargeError,
)
from watchparty.core.logging import get_logger

logger = get_logger(__name__)

ROOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
ROOM_CODE_ALPHABET: str = string.ascii_lowercase + string.digits

VIDEO_EXTENSIONS: tuple[str, ...] = (".mp4", ".mkv", ".webm", ".mov", ".mp3")
ALLOWED_VIDEO_TYPES: frozenset[str] = frozenset({
    "video/mp4",
    "video/webm",
    "video/mkv",
    "video/x-matroska",
    "video/quicktime",
    "audio/mpeg",
})
SUBTITLE_EXTENSIONS: tuple[str, ...] = (".srt", ".vtt")
SUBTITLE_FILENAME: str = "subtitles.vtt"

_CHUNK_SIZE: int = 1024 * 1024
_SRT_TIMESTAMP = re.compile(r"(\d{1,2}:\d{2}:\d{2}),(\d{3})")


def validate_room_code(room_id: str) -> str:
    """校验房间码只含安全字符，防止路径穿越。"""
    if not ROOM_CODE_PATTERN.match(room_id):
        raise InvalidRoomCodeError(room_id)
    return room_id


def new_room_code(length: int = 6) -> str:
    """生成随机房间码（小写字母 + 数字）。"""
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def srt_to_vtt(text: str) -> str:
    """把 SRT 字幕转换为 WebVTT。已经是 WebVTT 的文本原样返回（统一换行符）。"""
    body = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    if body.lstrip().startswith("WEBVTT"):
        return body
    lines = [
        _SRT_TIMESTAMP.sub(r"\1.\2", line) if "-->" in line else line
        for line in body.strip().split("\n")
    ]
    return "WEBVTT\n\n" + "\n".join(lines) + "\n"


class MediaStore:
    """按房间组织的上传目录。

    Attributes:
        root: 上传根目录。
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def room_dir(self, room_id: str) -> Path:
        return self.root / validate_room_code(room_id)

    def exists(self, room_id: str) -> bool:
        return self.room_dir(room_id).is_dir()

    def save_video(
        self, room_id: str, filename: str, source: BinaryIO, max_bytes: int,
    ) -> Path:
        """保存视频。会先清空房间目录，一个房间同一时刻只有一个媒体文件。

        Raises:
            UploadTooLargeError: 写入字节数超过 ``max_bytes``。
            InvalidFilenameError: 文件名是 ``.`` 或 ``..``。
        """
        name = Path(filename).name or "video.mp4"
        if name in (".", ".."):
            raise InvalidFilenameError(f"非法的文件名: {filename!r}")
        directory = self.room_dir(room_id)
        shutil.rmtree(directory, ignore_errors=True)
        directory.mkdir(parents=True, exist_ok=True)

        target = directory / name
        written = 0
        with target.open("wb") as out:
            while True:
                chunk = source.read(_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    break
                out.write(chunk)
        if written > max_bytes:
            target.unlink(missing_ok=True)
            raise UploadTooLargeError(f"文件超过大小上限 {max_bytes} 字节")

        logger.info("视频已保存 | room=%s | file=%s | bytes=%d", room_id, target.name, written)
        return target

    def save_subtitles(self, room_id: str, filename: str, raw: bytes) -> Path:
        """保存字幕，SRT 会被转换为 WebVTT。"""
        directory = self.room_dir(room_id)
        directory.mkdir(parents=True, exist_ok=True)
        text = raw.decode("utf-8", errors="replace")
        if Path(filename).suffix.lower() == ".srt":
            text = srt_to_vtt(text)
        target = directory / SUBTITLE_FILENAME
        target.write_text(text, encoding="utf-8")
        logger.info("字幕已保存 | room=%s | source=%s", room_id, filename)
        return target

    def find_video(self, room_id: str) -> str | None:
        directory = self.room_dir(room_id)
        if not directory.is_dir():
            return None
        for entry in sorted(directory.iterdir()):
            if entry.is_file() and entry.suffix.lower() in VIDEO_EXTENSIONS:
                return entry.name
        return None

    def find_subtitles(self, room_id: str) -> str | None:
        target = self.room_dir(room_id) / SUBTITLE_FILENAME
        return target.name if target.is_file() else None

    def remove(self, room_id: str) -> bool:
        """删除房间目录。目录不存在返回 False。"""
        directory = self.room_dir(room_id)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        logger.info("房间目录已删除 | room=%s", room_id)
        return True
