"""
watchparty.services.chat
~~~~~~~~~~~~~~~~~~~~~~~~

聊天中继 —— 追加房间聊天记录并广播给房间内所有成员（包括发送者本人）。

客户端以广播回显为准渲染自己的消息，不做本地乐观插入。
"""
from __future__ import annotations

from watchparty.core.logging import get_logger
from watchparty.schemas.events import ChatMessage, OutboundEvent
from watchparty.services.connection import ConnectionManager
from watchparty.services.registry import SessionRegistry
from watchparty.services.room import Room

logger = get_logger(__name__)

SYSTEM_SPEAKER: str = "System"


class ChatRelay:
    """聊天中继。

    Attributes:
        registry: 房间注册表。
        connections: 连接管理器。
    """

    def __init__(self, registry: SessionRegistry, connections: ConnectionManager) -> None:
        self.registry = registry
        self.connections = connections

    async def post_message(
        self, connection_id: str, room_id: str, text: str,
    ) -> ChatMessage | None:
        """发送一条普通聊天消息。房间不存在或发送者不在房间内时静默丢弃。"""
        async with self.registry.locked(room_id) as room:
            if room is None or connection_id not in room.members:
                logger.debug("聊天消息丢弃：不在房间内 | room=%s", room_id)
                return None
            message = ChatMessage(
                speaker_name=room.members[connection_id].display_name,
                text=text,
            )
            room.chat_history.append(message)
            await self.connections.broadcast(
                room.member_ids(), OutboundEvent.CHAT_MESSAGE, message.to_wire(),
            )
            return message

    def record_system(self, room: Room, text: str) -> ChatMessage:
        """只追加一条系统消息到聊天记录，不广播。调用方必须已持有 ``room.lock``。"""
        message = ChatMessage(speaker_name=SYSTEM_SPEAKER, text=text, is_system_message=True)
        room.chat_history.append(message)
        return message

    async def emit(
        self, recipients: list[str], message: ChatMessage, exclude: str | None = None,
    ) -> int:
        return await self.connections.broadcast(
            recipients, OutboundEvent.CHAT_MESSAGE, message.to_wire(), exclude=exclude,
        )

    async def announce(
        self, room: Room, text: str, exclude: str | None = None,
    ) -> ChatMessage:
        """追加并广播一条系统消息。调用方必须已持有 ``room.lock``。"""
        message = self.record_system(room, text)
        await self.emit(room.member_ids(), message, exclude=exclude)
        return message

    def history(self, room_id: str) -> list[ChatMessage]:
        """返回房间聊天记录的快照；房间不存在时返回空列表。"""
        room = self.registry.get(room_id)
        return list(room.chat_history) if room else []
