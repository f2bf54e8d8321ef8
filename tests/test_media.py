"""
tests.test_media
~~~~~~~~~~~~~~~~

房间媒体存储与字幕转换单元测试。
"""
from __future__ import annotations

import io
from pathlib import Path

import pytest

from watchparty.core.errors import (
    InvalidFilenameError,
    InvalidRoomCodeError,
    UploadTooLargeError,
)
from watchparty.services.media import (
    ROOM_CODE_ALPHABET,
    MediaStore,
    new_room_code,
    srt_to_vtt,
    validate_room_code,
)

SAMPLE_SRT = (
    "1\r\n"
    "00:00:01,000 --> 00:00:04,500\r\n"
    "Hello at 12:00:00,000 sharp\r\n"
    "\r\n"
    "2\r\n"
    "00:01:02,250 --> 00:01:05,000\r\n"
    "Bye\r\n"
)


class TestSrtToVtt:

    def test_converts_cue_timestamps_only(self) -> None:
        result = srt_to_vtt(SAMPLE_SRT)

        assert result.startswith("WEBVTT\n\n")
        assert "00:00:01.000 --> 00:00:04.500" in result
        assert "00:01:02.250 --> 00:01:05.000" in result
        # 台词里的逗号时间不应被改动
        assert "Hello at 12:00:00,000 sharp" in result
        assert "\r" not in result

    def test_vtt_passes_through(self) -> None:
        vtt = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nHi\n"

        assert srt_to_vtt(vtt) == vtt

    def test_strips_byte_order_mark(self) -> None:
        assert srt_to_vtt("\ufeff" + SAMPLE_SRT).startswith("WEBVTT")


class TestRoomCodes:

    def test_new_room_code_shape(self) -> None:
        code = new_room_code(6)

        assert len(code) == 6
        assert set(code) <= set(ROOM_CODE_ALPHABET)

    @pytest.mark.parametrize("bad", ["", "../etc", "a/b", "x" * 65, "a b"])
    def test_rejects_unsafe_codes(self, bad: str) -> None:
        with pytest.raises(InvalidRoomCodeError):
            validate_room_code(bad)

    def test_accepts_safe_code(self) -> None:
        assert validate_room_code("abc123") == "abc123"


class TestMediaStore:

    def test_save_video_replaces_room_directory(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)
        store.save_video("r1", "old.mp4", io.BytesIO(b"old"), max_bytes=1024)
        store.save_subtitles("r1", "subs.vtt", b"WEBVTT\n")

        store.save_video("r1", "new.webm", io.BytesIO(b"new-bytes"), max_bytes=1024)

        assert store.find_video("r1") == "new.webm"
        assert store.find_subtitles("r1") is None
        assert (tmp_path / "r1" / "new.webm").read_bytes() == b"new-bytes"
        assert not (tmp_path / "r1" / "old.mp4").exists()

    def test_save_video_strips_directories_from_filename(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)

        path = store.save_video("r1", "../../evil.mp4", io.BytesIO(b"x"), max_bytes=10)

        assert path == tmp_path / "r1" / "evil.mp4"

    @pytest.mark.parametrize("bad", ["..", "foo/.."])
    def test_save_video_rejects_dot_names_before_wiping(self, tmp_path: Path, bad: str) -> None:
        store = MediaStore(tmp_path)
        store.save_video("r1", "keep.mp4", io.BytesIO(b"keep"), max_bytes=10)

        with pytest.raises(InvalidFilenameError):
            store.save_video("r1", bad, io.BytesIO(b"x"), max_bytes=10)

        assert store.find_video("r1") == "keep.mp4"
        assert (tmp_path / "r1" / "keep.mp4").read_bytes() == b"keep"

    def test_save_video_too_large(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)

        with pytest.raises(UploadTooLargeError):
            store.save_video("r1", "big.mp4", io.BytesIO(b"x" * 100), max_bytes=10)

        assert store.find_video("r1") is None

    def test_save_srt_subtitles_as_vtt(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)

        path = store.save_subtitles("r1", "movie.SRT", SAMPLE_SRT.encode("utf-8"))

        assert path.name == "subtitles.vtt"
        assert path.read_text(encoding="utf-8").startswith("WEBVTT")
        assert store.find_subtitles("r1") == "subtitles.vtt"

    def test_missing_room_has_no_files(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)

        assert store.exists("nope") is False
        assert store.find_video("nope") is None
        assert store.find_subtitles("nope") is None
        assert store.remove("nope") is False

    def test_remove_deletes_directory(self, tmp_path: Path) -> None:
        store = MediaStore(tmp_path)
        store.save_video("r1", "a.mp4", io.BytesIO(b"a"), max_bytes=10)

        assert store.remove("r1") is True
        assert not (tmp_path / "r1").exists()
