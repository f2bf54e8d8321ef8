"""
tests.test_access_control
~~~~~~~~~~~~~~~~~~~~~~~~~

控制权申请 / 批准 / 拒绝流程单元测试。
"""
from __future__ import annotations

import pytest

from watchparty.services.coordinator import RoomCoordinator


class TestRequestChange:

    @pytest.mark.asyncio
    async def test_request_goes_to_admin_only(self, coordinator: RoomCoordinator, join) -> None:
        a = await join("a", "r1", "A")
        b = await join("b", "r1", "B")
        c = await join("c", "r1", "C")
        for ws in (a, b, c):
            ws.clear()

        await coordinator.dispatch("b", "request-change", {"roomId": "r1", "name": "B"})

        assert a.events("change-request") == [
            {"event": "change-request", "data": {"from": "B", "requesterId": "b"}},
        ]
        assert b.sent == []
        assert c.sent == []

    @pytest.mark.asyncio
    async def test_request_falls_back_to_session_name(
        self, coordinator: RoomCoordinator, join,
    ) -> None:
        a = await join("a", "r1", "A")
        await join("b", "r1", "B")

        await coordinator.dispatch("b", "request-change", {"roomId": "r1"})

        assert a.events("change-request")[0]["data"]["from"] == "B"

    @pytest.mark.asyncio
    async def test_admin_requesting_is_dropped(self, coordinator: RoomCoordinator, join) -> None:
        a = await join("a", "r1", "A")
        a.clear()

        delivered = await coordinator.access.request_change("a", "r1", "A")

        assert delivered is False
        assert a.sent == []

    @pytest.mark.asyncio
    async def test_request_for_missing_room_is_silent(
        self, coordinator: RoomCoordinator, connect,
    ) -> None:
        x = await connect("x")

        delivered = await coordinator.access.request_change("x", "nowhere", "X")

        assert delivered is False
        assert x.sent == []


class TestGrantAndDeny:

    @pytest.mark.asyncio
    async def test_grant_from_non_admin_is_still_delivered(
        self, coordinator: RoomCoordinator, join,
    ) -> None:
        """默认不校验 grant 的发起者。"""
        await join("a", "r1", "A")
        x = await join("x", "r1", "X")
        y = await join("y", "r1", "Y")
        x.clear()
        y.clear()

        await coordinator.dispatch("x", "grant-change", {"roomId": "r1", "requesterId": "y"})

        assert y.sent == [{"event": "change-granted", "data": None}]
        assert x.sent == []

    @pytest.mark.asyncio
    async def test_grant_does_not_transfer_admin(self, coordinator: RoomCoordinator, join) -> None:
        await join("a", "r1", "A")
        b = await join("b", "r1", "B")
        b.clear()

        await coordinator.dispatch("a", "grant-change", {"roomId": "r1", "requesterId": "b"})

        assert coordinator.get_room("r1").admin == "a"
        assert b.events("admin-status") == []
        assert b.event_names() == ["change-granted"]

    @pytest.mark.asyncio
    async def test_deny_is_delivered_to_target(self, coordinator: RoomCoordinator, join) -> None:
        await join("a", "r1", "A")
        b = await join("b", "r1", "B")
        b.clear()

        await coordinator.dispatch("a", "deny-request", {"roomId": "r1", "userId": "b"})

        assert b.sent == [{"event": "request-denied", "data": None}]

    @pytest.mark.asyncio
    async def test_grant_to_disconnected_target_has_no_effect(
        self, coordinator: RoomCoordinator, join,
    ) -> None:
        await join("a", "r1", "A")
        await join("b", "r1", "B")
        await coordinator.disconnect("b")

        delivered = await coordinator.access.grant("a", "r1", "b")

        assert delivered is False


class TestEnforcedGrants:
    """开启 ``enforce_admin_grants`` 后只有房管能处理申请。"""

    @pytest.fixture()
    def coordinator(self) -> RoomCoordinator:
        return RoomCoordinator(enforce_admin_grants=True)

    @pytest.mark.asyncio
    async def test_non_admin_grant_is_dropped(self, coordinator: RoomCoordinator, join) -> None:
        await join("a", "r1", "A")
        await join("x", "r1", "X")
        y = await join("y", "r1", "Y")
        y.clear()

        await coordinator.dispatch("x", "grant-change", {"roomId": "r1", "requesterId": "y"})
        await coordinator.dispatch("x", "deny-request", {"roomId": "r1", "userId": "y"})

        assert y.sent == []

    @pytest.mark.asyncio
    async def test_admin_grant_is_delivered(self, coordinator: RoomCoordinator, join) -> None:
        await join("a", "r1", "A")
        y = await join("y", "r1", "Y")
        y.clear()

        await coordinator.dispatch("a", "grant-change", {"roomId": "r1", "requesterId": "y"})

        assert y.event_names() == ["change-granted"]
