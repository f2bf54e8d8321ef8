"""
watchparty.services.coordinator
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间会话协调器 —— 持有注册表、连接表和会话表，把上行事件分派给各组件，
并向上传等外部协作方暴露通知入口。

在 FastAPI lifespan 中创建一个实例并挂载到 ``app.state.coordinator``，
所有处理器通过引用共享它，不使用模块级全局变量。
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket
from pydantic import ValidationError

from watchparty.core.logging import get_logger
from watchparty.schemas.events import (
    INBOUND_PAYLOADS,
    ChatMessage,
    ChatMessagePayload,
    DenyRequestPayload,
    GrantChangePayload,
    InboundEvent,
    JoinRoomPayload,
    LeaveRoomPayload,
    OutboundEvent,
    RequestChangePayload,
    SubtitleChangePayload,
    VideoActionPayload,
)
from watchparty.services.access_control import AccessControl
from watchparty.services.chat import ChatRelay
from watchparty.services.connection import ConnectionManager
from watchparty.services.membership import MembershipManager
from watchparty.services.playback import PlaybackRelay
from watchparty.services.registry import SessionRegistry
from watchparty.services.room import Room
from watchparty.services.session import SessionTable
from watchparty.services.subtitles import SubtitleState

logger = get_logger(__name__)

Handler = Callable[[str, Any], Awaitable[Any]]


class RoomCoordinator:
    """房间会话协调器。

    - ``connect / disconnect``         → 连接生命周期（断开即离开房间）
    - ``dispatch(cid, event, data)``   → 上行事件分派
    - ``on_media_changed(room_id)``    → 上传协作方通知：媒体已更新
    - ``on_subtitles_changed(room_id)``→ 上传协作方通知：字幕文件已更新
    - ``end_session(room_id)``         → 结束会话并销毁房间

    Attributes:
        registry: 房间注册表。
        connections: 连接管理器。
        sessions: 连接会话表。
    """

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        connections: ConnectionManager | None = None,
        sessions: SessionTable | None = None,
        *,
        enforce_admin_grants: bool = False,
        send_timeout: float = 5.0,
    ) -> None:
        self.registry = registry or SessionRegistry()
        self.connections = connections or ConnectionManager(send_timeout=send_timeout)
        self.sessions = sessions or SessionTable()

        self.chat = ChatRelay(self.registry, self.connections)
        self.membership = MembershipManager(
            self.registry, self.connections, self.sessions, self.chat,
        )
        self.playback = PlaybackRelay(self.registry, self.connections)
        self.subtitles = SubtitleState(self.registry, self.connections)
        self.access = AccessControl(
            self.registry, self.connections, self.sessions,
            enforce_admin_grants=enforce_admin_grants,
        )

        self._handlers: dict[InboundEvent, Handler] = {
            InboundEvent.JOIN_ROOM: self._on_join_room,
            InboundEvent.LEAVE_ROOM: self._on_leave_room,
            InboundEvent.CHAT_MESSAGE: self._on_chat_message,
            InboundEvent.VIDEO_ACTION: self._on_video_action,
            InboundEvent.SUBTITLE_CHANGE: self._on_subtitle_change,
            InboundEvent.REQUEST_CHANGE: self._on_request_change,
            InboundEvent.GRANT_CHANGE: self._on_grant_change,
            InboundEvent.DENY_REQUEST: self._on_deny_request,
        }

    # ── 连接生命周期 ──────────────────────────────────────────────────

    async def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """接受连接并建立会话。"""
        await self.connections.connect(connection_id, websocket)
        self.sessions.open(connection_id)

    async def disconnect(self, connection_id: str) -> None:
        """连接断开：销毁会话，若在房间内则执行离开逻辑。从未加入房间的连接什么也不做。"""
        self.connections.disconnect(connection_id)
        session = self.sessions.close(connection_id)
        if session is not None and session.room_id is not None:
            # 调用方被取消时离开逻辑仍须完成
            await asyncio.shield(self.membership.leave(connection_id, session.room_id))

    # ── 上行事件 ──────────────────────────────────────────────────────

    async def dispatch(self, connection_id: str, event: str, data: Any) -> bool:
        """校验并分派一条上行事件。未知事件或非法负载静默丢弃。

        Returns:
            事件是否被分派到了处理器。
        """
        try:
            inbound = InboundEvent(event)
        except ValueError:
            logger.debug("未知事件已忽略 | event=%r", event)
            return False

        try:
            payload = INBOUND_PAYLOADS[inbound].model_validate(data)
        except ValidationError as e:
            logger.debug(
                "事件负载非法已忽略 | event=%s | errors=%d", event, e.error_count(),
            )
            return False

        await self._handlers[inbound](connection_id, payload)
        return True

    async def _on_join_room(self, connection_id: str, payload: JoinRoomPayload) -> None:
        await self.membership.join(connection_id, payload.room_id, payload.name)

    async def _on_leave_room(self, connection_id: str, payload: LeaveRoomPayload) -> None:
        await self.membership.leave(connection_id, payload.room_id)

    async def _on_chat_message(self, connection_id: str, payload: ChatMessagePayload) -> None:
        await self.chat.post_message(connection_id, payload.room_id, payload.msg)

    async def _on_video_action(self, connection_id: str, payload: VideoActionPayload) -> None:
        await self.playback.relay_action(
            connection_id, payload.room_id, payload.action, payload.time,
        )

    async def _on_subtitle_change(
        self, connection_id: str, payload: SubtitleChangePayload,
    ) -> None:
        await self.subtitles.set_subtitle(connection_id, payload.room_id, payload.subtitle)

    async def _on_request_change(
        self, connection_id: str, payload: RequestChangePayload,
    ) -> None:
        await self.access.request_change(connection_id, payload.room_id, payload.name)

    async def _on_grant_change(self, connection_id: str, payload: GrantChangePayload) -> None:
        await self.access.grant(connection_id, payload.room_id, payload.requester_id)

    async def _on_deny_request(self, connection_id: str, payload: DenyRequestPayload) -> None:
        await self.access.deny(connection_id, payload.room_id, payload.user_id)

    # ── 外部协作方入口 ────────────────────────────────────────────────

    async def on_media_changed(self, room_id: str) -> int:
        """房间有新媒体文件可用，通知房间内所有成员重新拉取。"""
        return await self._notify_room(room_id, OutboundEvent.MEDIA_CHANGED)

    async def on_subtitles_changed(self, room_id: str) -> int:
        """房间字幕文件已更新，通知房间内所有成员。"""
        return await self._notify_room(room_id, OutboundEvent.SUBTITLES_UPDATED)

    async def end_session(self, room_id: str) -> int:
        """结束会话：广播 ``session-ended``，解除成员绑定并销毁房间。

        Returns:
            收到通知的连接数。
        """
        async with self.registry.locked(room_id) as room:
            if room is None:
                return 0
            members = room.member_ids()
            notified = await self.connections.broadcast(members, OutboundEvent.SESSION_ENDED)
            for connection_id in members:
                self.sessions.unbind(connection_id, room_id)
            room.members.clear()
            room.admin = None
            self.registry.delete(room_id)
            logger.info("会话已结束 | room=%s | 通知: %d", room_id, notified)
            return notified

    async def _notify_room(self, room_id: str, event: OutboundEvent) -> int:
        async with self.registry.locked(room_id) as room:
            if room is None:
                logger.debug("房间不存在，通知忽略 | room=%s | event=%s", room_id, event.value)
                return 0
            return await self.connections.broadcast(room.member_ids(), event)

    # ── 查询 ──────────────────────────────────────────────────────────

    def get_room(self, room_id: str) -> Room | None:
        return self.registry.get(room_id)

    def list_rooms(self) -> list[Room]:
        return self.registry.list_rooms()

    def history(self, room_id: str) -> list[ChatMessage]:
        return self.chat.history(room_id)

    async def shutdown(self) -> None:
        """关闭所有连接。"""
        await self.connections.close_all()
