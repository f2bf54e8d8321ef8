"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用记录型的假 WebSocket 替代真实连接，
使协调器的单元测试无需启动服务即可运行。
"""
from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="watchparty-test-"))

from watchparty.services.coordinator import RoomCoordinator  # noqa: E402


class FakeWebSocket:
    """记录所有下行帧的假 WebSocket。

    Args:
        fail: 为 True 时每次 ``send_json`` 都抛异常，模拟已断开的对端。
        delay: 每次 ``send_json`` 前等待的秒数，模拟卡住的对端。
    """

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.closed = False
        self.fail = fail
        self.delay = delay

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("connection lost")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        """返回收到的帧，可按事件名过滤。"""
        if name is None:
            return list(self.sent)
        return [frame for frame in self.sent if frame["event"] == name]

    def event_names(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def chat_texts(self) -> list[str]:
        return [frame["data"]["text"] for frame in self.events("chat-message")]

    def clear(self) -> None:
        self.sent.clear()


Connect = Callable[..., Awaitable[FakeWebSocket]]


@pytest.fixture()
def coordinator() -> RoomCoordinator:
    """每个测试一个独立的协调器（独立的注册表与连接表）。"""
    return RoomCoordinator()


@pytest.fixture()
def connect(coordinator: RoomCoordinator) -> Connect:
    """建立一条假连接，返回对应的 ``FakeWebSocket``。"""

    async def _connect(connection_id: str, **kwargs: Any) -> FakeWebSocket:
        websocket = FakeWebSocket(**kwargs)
        await coordinator.connect(connection_id, websocket)
        return websocket

    return _connect


@pytest.fixture()
def join(coordinator: RoomCoordinator, connect: Connect) -> Connect:
    """建立连接并加入房间。"""

    async def _join(connection_id: str, room_id: str, name: str, **kwargs: Any) -> FakeWebSocket:
        websocket = await connect(connection_id, **kwargs)
        await coordinator.dispatch(
            connection_id, "join-room", {"roomId": room_id, "name": name},
        )
        return websocket

    return _join

