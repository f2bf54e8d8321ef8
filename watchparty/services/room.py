"""
watchparty.services.room
~~~~~~~~~~~~~~~~~~~~~~~~

房间领域模型 —— 封装一个观影房间的全部内存状态。

每个 ``Room`` 拥有独立的成员表、房管指针、聊天记录和字幕选择，
以及一把 ``asyncio.Lock``：所有对同一房间的修改及其下行推送都在锁内串行执行，
房间之间互不干扰。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass

from watchparty.schemas.events import ChatMessage
from watchparty.schemas.rooms import RoomInfoData


@dataclass
class Member:
    """房间成员。"""

    display_name: str


class Room:
    """一个观影房间。

    Attributes:
        room_id: 房间唯一标识。
        members: 连接 ID → 成员，按加入顺序排列。
        admin: 房管的连接 ID；仅当房间为空时为 None。
        chat_history: 只追加的聊天记录。
        current_subtitle: 最近一次广播的字幕选择，会同步给后加入的成员。
        lock: 房间级互斥锁。
        closed: 房间已从注册表移除，持有旧引用的调用方必须重新获取。
    """

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self.members: dict[str, Member] = {}
        self.admin: str | None = None
        self.chat_history: list[ChatMessage] = []
        self.current_subtitle: str | None = None
        self.lock = asyncio.Lock()
        self.closed = False

    @property
    def member_count(self) -> int:
        """当前在线人数。"""
        return len(self.members)

    def member_ids(self) -> list[str]:
        return list(self.members)

    def member_names(self) -> list[str]:
        return [member.display_name for member in self.members.values()]

    def display_name_of(self, connection_id: str | None) -> str | None:
        member = self.members.get(connection_id) if connection_id else None
        return member.display_name if member else None

    def pick_successor(self) -> str | None:
        """选出新房管：剩余成员中最早加入的那位。"""
        return next(iter(self.members), None)

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            member_count=self.member_count,
            users=self.member_names(),
            admin=self.display_name_of(self.admin),
            current_subtitle=self.current_subtitle,
        )
