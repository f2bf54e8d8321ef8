"""
watchparty.services.session
~~~~~~~~~~~~~~~~~~~~~~~~~~~

连接会话表 —— 把每条 WebSocket 连接绑定到（显示名, 房间）。

会话只在连接存活期间存在；连接关闭时由协调器销毁，并触发离开房间逻辑。
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ConnectionSession:
    """单条连接的会话记录。"""

    connection_id: str
    display_name: str | None = None
    room_id: str | None = None


class SessionTable:
    """连接 ID → ``ConnectionSession``。一条连接同一时刻最多属于一个房间。"""

    def __init__(self) -> None:
        self._sessions: dict[str, ConnectionSession] = {}

    def open(self, connection_id: str) -> ConnectionSession:
        session = ConnectionSession(connection_id=connection_id)
        self._sessions[connection_id] = session
        return session

    def get(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.get(connection_id)

    def close(self, connection_id: str) -> ConnectionSession | None:
        return self._sessions.pop(connection_id, None)

    def bind(self, connection_id: str, room_id: str, display_name: str) -> None:
        session = self._sessions.get(connection_id)
        if session is not None:
            session.room_id = room_id
            session.display_name = display_name

    def unbind(self, connection_id: str, room_id: str) -> None:
        """解除房间绑定（仅当连接当前确实绑定在该房间上）。"""
        session = self._sessions.get(connection_id)
        if session is not None and session.room_id == room_id:
            session.room_id = None

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
