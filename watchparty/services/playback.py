"""
watchparty.services.playback
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

播放同步中继 —— 把 play / pause / seek 从发起者转发给房间内其他成员。

服务端不维护权威时钟，只做纯转发，各端本地时钟的漂移不做校正。
"""
from __future__ import annotations

from watchparty.core.logging import get_logger
from watchparty.schemas.events import OutboundEvent, VideoActionData
from watchparty.services.connection import ConnectionManager
from watchparty.services.registry import SessionRegistry

logger = get_logger(__name__)


class PlaybackRelay:
    def __init__(self, registry: SessionRegistry, connections: ConnectionManager) -> None:
        self.registry = registry
        self.connections = connections

    async def relay_action(
        self, connection_id: str, room_id: str, action: str, time: float | None,
    ) -> int:
        """转发播放控制事件（不回显给发起者），返回送达数量。"""
        async with self.registry.locked(room_id) as room:
            if room is None or connection_id not in room.members:
                logger.debug("播放事件丢弃：不在房间内 | room=%s", room_id)
                return 0
            data = VideoActionData(action=action, time=time).to_wire()
            delivered = await self.connections.broadcast(
                room.member_ids(), OutboundEvent.VIDEO_ACTION, data, exclude=connection_id,
            )
            logger.debug("播放事件转发 | room=%s | action=%s | time=%s", room_id, action, time)
            return delivered
