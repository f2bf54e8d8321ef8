"""
watchparty.services.subtitles
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

字幕状态 —— 记录房间当前的字幕选择并同步给其他成员。
"""
from __future__ import annotations

from watchparty.core.logging import get_logger
from watchparty.schemas.events import OutboundEvent, SubtitleData
from watchparty.services.connection import ConnectionManager
from watchparty.services.registry import SessionRegistry

logger = get_logger(__name__)


class SubtitleState:
    def __init__(self, registry: SessionRegistry, connections: ConnectionManager) -> None:
        self.registry = registry
        self.connections = connections

    async def set_subtitle(
        self, connection_id: str, room_id: str, subtitle: str | None,
    ) -> bool:
        """更新 ``current_subtitle`` 并转发给除设置者以外的成员。

        后加入的成员在 join 时收到当前值。
        """
        async with self.registry.locked(room_id) as room:
            if room is None or connection_id not in room.members:
                logger.debug("字幕切换丢弃：不在房间内 | room=%s", room_id)
                return False
            room.current_subtitle = subtitle
            await self.connections.broadcast(
                room.member_ids(),
                OutboundEvent.SUBTITLE_CHANGE,
                SubtitleData(subtitle=subtitle).to_wire(),
                exclude=connection_id,
            )
            return True
