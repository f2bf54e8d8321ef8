"""
watchparty.services.access_control
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

控制权申请流程 —— 非房管向房管申请控制权，房管批准或拒绝。

注意两点刻意保留的行为：
  - 批准（grant）只是通知申请者可以操作，并不移动房间的 ``admin`` 指针；
  - 默认不校验 grant / deny 的发起者是否为房管。开启
    ``enforce_admin_grants`` 后，非房管发起的 grant / deny 会被丢弃。
"""
from __future__ import annotations

from watchparty.core.logging import get_logger
from watchparty.schemas.events import ChangeRequestData, OutboundEvent
from watchparty.services.connection import ConnectionManager
from watchparty.services.registry import SessionRegistry
from watchparty.services.session import SessionTable

logger = get_logger(__name__)


class AccessControl:
    """控制权申请 / 批准 / 拒绝。

    Attributes:
        enforce_admin_grants: 是否要求 grant / deny 的发起者是该房间房管。
    """

    def __init__(
        self,
        registry: SessionRegistry,
        connections: ConnectionManager,
        sessions: SessionTable,
        enforce_admin_grants: bool = False,
    ) -> None:
        self.registry = registry
        self.connections = connections
        self.sessions = sessions
        self.enforce_admin_grants = enforce_admin_grants

    async def request_change(
        self, connection_id: str, room_id: str, display_name: str | None = None,
    ) -> bool:
        """把申请转给房管。申请者本身是房管或房间没有房管时静默丢弃。"""
        async with self.registry.locked(room_id) as room:
            if room is None or room.admin is None or room.admin == connection_id:
                logger.debug("控制权申请丢弃 | room=%s", room_id)
                return False
            if display_name is None:
                session = self.sessions.get(connection_id)
                display_name = session.display_name if session else None
            data = ChangeRequestData(from_=display_name, requester_id=connection_id)
            return await self.connections.send(
                room.admin, OutboundEvent.CHANGE_REQUEST, data.to_wire(),
            )

    async def grant(self, connection_id: str, room_id: str, requester_id: str) -> bool:
        """通知申请者已获批准。不改变房管。"""
        if not self._may_answer(connection_id, room_id):
            return False
        logger.info("控制权申请已批准 | room=%s | requester=%s", room_id, requester_id)
        return await self.connections.send(requester_id, OutboundEvent.CHANGE_GRANTED)

    async def deny(self, connection_id: str, room_id: str, user_id: str) -> bool:
        """通知申请者被拒绝。"""
        if not self._may_answer(connection_id, room_id):
            return False
        return await self.connections.send(user_id, OutboundEvent.REQUEST_DENIED)

    def _may_answer(self, connection_id: str, room_id: str) -> bool:
        if not self.enforce_admin_grants:
            return True
        room = self.registry.get(room_id)
        if room is None or room.admin != connection_id:
            logger.warning("非房管尝试处理控制权申请，已忽略 | room=%s", room_id)
            return False
        return True
