"""
watchparty.services.membership
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

成员管理 —— 加入 / 离开房间、房管分配与移交、成员变动的系统消息。

不变式：
  - 非空房间恰好有一位房管，且房管一定是在线成员；
  - 房间清空的同时从注册表移除。
"""
from __future__ import annotations

from watchparty.core.logging import get_logger
from watchparty.schemas.events import (
    AdminStatusData,
    OutboundEvent,
    SubtitleData,
    UserData,
)
from watchparty.services.chat import ChatRelay
from watchparty.services.connection import ConnectionManager
from watchparty.services.registry import SessionRegistry
from watchparty.services.room import Member, Room
from watchparty.services.session import SessionTable

logger = get_logger(__name__)


class MembershipManager:
    """成员管理器。

    Attributes:
        registry: 房间注册表。
        connections: 连接管理器。
        sessions: 连接会话表。
        chat: 聊天中继，用于追加系统消息。
    """

    def __init__(
        self,
        registry: SessionRegistry,
        connections: ConnectionManager,
        sessions: SessionTable,
        chat: ChatRelay,
    ) -> None:
        self.registry = registry
        self.connections = connections
        self.sessions = sessions
        self.chat = chat

    async def join(self, connection_id: str, room_id: str, display_name: str) -> Room | None:
        """连接加入房间（房间不存在则创建，首位加入者成为房管）。

        已在其他房间的连接会先离开原房间；重复加入同一房间只更新显示名并重新同步状态。
        """
        session = self.sessions.get(connection_id)
        if session is None:
            logger.debug("加入房间忽略：连接不存在 | room=%s", room_id)
            return None
        if session.room_id is not None and session.room_id != room_id:
            await self.leave(connection_id, session.room_id)

        async with self.registry.locked(room_id, create=True) as room:
            if room is None:
                return None
            rejoin = connection_id in room.members
            history = [message.to_wire() for message in room.chat_history]

            if room.admin is None:
                room.admin = connection_id
            room.members[connection_id] = Member(display_name=display_name)
            self.sessions.bind(connection_id, room_id, display_name)

            if not rejoin and room.member_count > 1:
                await self.chat.announce(
                    room, f"{display_name} joined the room", exclude=connection_id,
                )

            await self.connections.send(connection_id, OutboundEvent.CHAT_HISTORY, history)
            if room.current_subtitle is not None:
                await self.connections.send(
                    connection_id,
                    OutboundEvent.SUBTITLE_CHANGE,
                    SubtitleData(subtitle=room.current_subtitle).to_wire(),
                )
            await self.connections.send(
                connection_id,
                OutboundEvent.ADMIN_STATUS,
                AdminStatusData(is_admin_user=room.admin == connection_id).to_wire(),
            )
            await self._broadcast_users(room)

            logger.info(
                "成员加入 | room=%s | name=%s | 在线: %d | admin=%s",
                room_id, display_name, room.member_count, room.admin == connection_id,
            )
            return room

    async def leave(self, connection_id: str, room_id: str) -> bool:
        """连接离开房间。幂等：房间或成员不存在时什么也不做。

        先一次性完成全部状态变更（移除成员、移交房管、追加系统消息、删除空房间），
        再发送通知。通知中途被取消时房间状态已经一致。

        Returns:
            是否真的移除了成员。
        """
        async with self.registry.locked(room_id) as room:
            if room is None or connection_id not in room.members:
                return False

            member = room.members.pop(connection_id)
            self.sessions.unbind(connection_id, room_id)

            left = None
            if member.display_name and room.members:
                left = self.chat.record_system(room, f"{member.display_name} left the room")

            handover = None
            if room.admin == connection_id:
                room.admin = room.pick_successor()
                if room.admin is not None:
                    successor = room.members[room.admin].display_name
                    handover = self.chat.record_system(room, f"{successor} is now the room admin")
                    logger.info("房管移交 | room=%s | new_admin=%s", room_id, successor)

            recipients = room.member_ids()
            users = [UserData(name=name).to_wire() for name in room.member_names()]
            if not room.members:
                self.registry.delete(room_id)
            logger.info(
                "成员离开 | room=%s | name=%s | 在线: %d",
                room_id, member.display_name, len(recipients),
            )

            if left is not None:
                await self.chat.emit(recipients, left)
            if handover is not None:
                await self.connections.send(
                    room.admin,
                    OutboundEvent.ADMIN_STATUS,
                    AdminStatusData(is_admin_user=True).to_wire(),
                )
                await self.chat.emit(recipients, handover)
            await self.connections.broadcast(recipients, OutboundEvent.USERS_UPDATED, users)
            return True

    async def _broadcast_users(self, room: Room) -> None:
        users = [UserData(name=name).to_wire() for name in room.member_names()]
        await self.connections.broadcast(room.member_ids(), OutboundEvent.USERS_UPDATED, users)
