"""
watchparty.services.registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间注册表 —— 房间 ID → ``Room`` 的进程内映射，负责房间的创建与销毁。

只有加入房间（懒创建）和房间清空 / 结束会话（销毁）会改变映射，
其余组件只做查询。
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from watchparty.core.logging import get_logger
from watchparty.services.room import Room

logger = get_logger(__name__)


class SessionRegistry:
    """房间注册表。

    - ``get_or_create(room_id)`` → 获取/创建房间
    - ``get(room_id)``           → 查询房间，不存在返回 None
    - ``delete(room_id)``        → 移除房间并标记为已关闭
    - ``locked(room_id)``        → 获取房间并持有其互斥锁
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id)
            self._rooms[room_id] = room
            logger.debug("房间已创建 | room=%s", room_id)
        return room

    def delete(self, room_id: str) -> Room | None:
        room = self._rooms.pop(room_id, None)
        if room is not None:
            room.closed = True
            logger.info("房间已销毁 | room=%s", room_id)
        return room

    def list_rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    @asynccontextmanager
    async def locked(self, room_id: str, *, create: bool = False) -> AsyncIterator[Room | None]:
        """获取房间并在 ``async with`` 块内持有它的锁。

        等锁期间房间可能已被销毁（最后一人离开），此时重新查询：
        ``create=True`` 会得到一个新房间，否则得到 None。

        Args:
            room_id: 房间 ID。
            create: 房间不存在时是否创建。
        """
        while True:
            room = self.get_or_create(room_id) if create else self.get(room_id)
            if room is None:
                yield None
                return
            async with room.lock:
                if room.closed:
                    continue
                yield room
                return
