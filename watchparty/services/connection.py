"""
watchparty.services.connection
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 连接管理器 —— 按连接 ID 定向推送与房间广播。
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket

from watchparty.core.logging import get_logger
from watchparty.schemas.events import OutboundEvent

logger = get_logger(__name__)


class ConnectionManager:
    """WebSocket 连接管理器。

    推送是尽力而为的：单个连接推送失败或超时，只会把该连接移出在线表并关闭它，
    不影响其他接收方，也不会向调用方抛出异常。被关闭的连接由其接收循环
    感知断开后走正常的离开流程。

    Attributes:
        active_connections: 连接 ID → 在线的 WebSocket。
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self.active_connections: dict[str, WebSocket] = {}
        self.send_timeout = send_timeout
        self._closing: set[asyncio.Task[None]] = set()

    async def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """接受新连接并加入在线表。"""
        await websocket.accept()
        self.active_connections[connection_id] = websocket

    def disconnect(self, connection_id: str) -> WebSocket | None:
        """从在线表移除连接。"""
        return self.active_connections.pop(connection_id, None)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.active_connections

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return len(self.active_connections)

    async def send(
        self, connection_id: str, event: OutboundEvent, data: Any = None,
    ) -> bool:
        """向单个连接推送事件。目标不在线时静默返回 False。"""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            logger.debug("推送目标不在线 | target=%s | event=%s", connection_id, event.value)
            return False
        return await self._deliver(connection_id, websocket, _frame(event, data))

    async def broadcast(
        self,
        connection_ids: Iterable[str],
        event: OutboundEvent,
        data: Any = None,
        exclude: str | None = None,
    ) -> int:
        """向一组连接广播事件，返回成功送达的数量。"""
        frame = _frame(event, data)
        targets = [
            (cid, self.active_connections[cid])
            for cid in connection_ids
            if cid != exclude and cid in self.active_connections
        ]
        results = await asyncio.gather(
            *(self._deliver(cid, ws, frame) for cid, ws in targets),
        )
        return sum(results)

    async def close_all(self) -> None:
        """关闭所有连接（应用关闭时调用）。"""
        for connection_id in list(self.active_connections):
            websocket = self.active_connections.pop(connection_id)
            await _close_quietly(websocket)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    async def _deliver(
        self, connection_id: str, websocket: WebSocket, frame: dict[str, Any],
    ) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(frame), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning(
                "推送失败，断开连接 | target=%s | event=%s | err=%r",
                connection_id, frame["event"], e,
            )
            self._drop(connection_id, websocket)
            return False

    def _drop(self, connection_id: str, websocket: WebSocket) -> None:
        if self.active_connections.get(connection_id) is websocket:
            del self.active_connections[connection_id]
        task = asyncio.create_task(_close_quietly(websocket))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)


def _frame(event: OutboundEvent, data: Any) -> dict[str, Any]:
    return {"event": event.value, "data": data}


async def _close_quietly(websocket: WebSocket) -> None:
    try:
        await websocket.close()
    except Exception as e:
        # 对端已断开时 close 会失败，属正常情况
        logger.debug("关闭连接失败: %r", e)
