"""
watchparty.api.ws
~~~~~~~~~~~~~~~~~

WebSocket 事件通道。

每个连接分配一个连接 ID；上行帧为 ``{"event": ..., "data": ...}``，
交给 ``RoomCoordinator.dispatch`` 处理。连接断开时执行离开房间逻辑。
"""
from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from watchparty.core.logging import connection_id_ctx_var, get_logger
from watchparty.core.rate_limit import WebSocketRateLimiter
from watchparty.schemas.events import InboundEvent, OutboundEvent, RateLimitedData
from watchparty.services.coordinator import RoomCoordinator

logger = get_logger(__name__)

router: APIRouter = APIRouter()


def parse_frame(raw: str) -> tuple[str, Any] | None:
    """解析上行帧，格式不对返回 None。"""
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """观影房间事件端点。

    上行事件: ``join-room`` / ``leave-room`` / ``chat-message`` / ``video-action`` /
    ``subtitle-change`` / ``request-change`` / ``grant-change`` / ``deny-request``。

    聊天消息发得过快时，仅向发送者推送 ``rate-limited``，消息本身被丢弃。
    """
    connection_id = uuid.uuid4().hex
    token = connection_id_ctx_var.set(connection_id)

    try:
        coordinator: RoomCoordinator = websocket.app.state.coordinator
        chat_limiter: WebSocketRateLimiter = websocket.app.state.chat_limiter

        await coordinator.connect(connection_id, websocket)
        logger.info("连接建立 | 在线: %d", coordinator.connections.online_count)

        try:
            while True:
                raw: str = await websocket.receive_text()
                parsed = parse_frame(raw)
                if parsed is None:
                    logger.debug("非法帧已忽略")
                    continue
                event, data = parsed

                if event == InboundEvent.CHAT_MESSAGE.value and not chat_limiter.is_allowed(connection_id):
                    await coordinator.connections.send(
                        connection_id,
                        OutboundEvent.RATE_LIMITED,
                        RateLimitedData(
                            event=event,
                            retry_after=round(chat_limiter.retry_after(connection_id), 3),
                        ).to_wire(),
                    )
                    continue

                await coordinator.dispatch(connection_id, event, data)
        except WebSocketDisconnect:
            pass  # 正常断开
        except Exception as e:
            logger.error("WebSocket 异常: %s", e, exc_info=True)
        finally:
            chat_limiter.remove_client(connection_id)
            await asyncio.shield(coordinator.disconnect(connection_id))
            logger.info("连接断开 | 在线: %d", coordinator.connections.online_count)
    finally:
        connection_id_ctx_var.reset(token)
