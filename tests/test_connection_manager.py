"""Tests for the chat session registry."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocketDisconnect

from seahorse.services.connection_manager import ChatSession, ConnectionManager


def make_socket() -> MagicMock:
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


class TestSessions:
    async def test_connect_accepts_and_registers(self, manager) -> None:
        websocket = make_socket()

        session_id = await manager.connect(websocket)

        websocket.accept.assert_awaited_once()
        status = manager.get_status()
        assert status["active_sessions"] == 1
        assert status["sessions"][0]["session_id"] == session_id

    async def test_disconnect_removes_session(self, manager) -> None:
        session_id = await manager.connect(make_socket())

        await manager.disconnect(session_id)
        await manager.disconnect(session_id)

        assert manager.get_status() == {"active_sessions": 0, "sessions": []}

    async def test_status_reports_chat_counters_only(self, manager) -> None:
        session_id = await manager.connect(make_socket())
        manager.record_question(session_id)

        await manager.send_message(session_id, {"type": "token", "token": "Hi"})
        await manager.send_message(session_id, {"type": "token", "token": "!"})
        await manager.send_message(session_id, {"type": "done", "response": "Hi!"})

        session = manager.get_status()["sessions"][0]
        assert set(session) == {
            "session_id",
            "connected_at",
            "last_activity",
            "questions",
            "tokens_sent",
            "answers_sent",
        }
        assert session["questions"] == 1
        assert session["tokens_sent"] == 2
        assert session["answers_sent"] == 1

    def test_manager_exposes_only_chat_operations(self) -> None:
        public = {name for name in dir(ConnectionManager) if not name.startswith("_")}

        assert public == {
            "connect",
            "disconnect",
            "send_message",
            "broadcast",
            "record_question",
            "close_all",
            "get_status",
        }
        assert "metadata" not in ChatSession.__dataclass_fields__


class TestSending:
    async def test_unknown_session_is_not_sent(self, manager) -> None:
        assert await manager.send_message("missing", {"type": "pong"}) is False

    async def test_dropped_socket_returns_false(self, manager) -> None:
        websocket = make_socket()
        websocket.send_json.side_effect = WebSocketDisconnect()
        session_id = await manager.connect(websocket)

        assert await manager.send_message(session_id, {"type": "pong"}) is False
        assert manager.get_status()["sessions"][0]["tokens_sent"] == 0

    async def test_broadcast_counts_deliveries(self, manager) -> None:
        healthy = make_socket()
        broken = make_socket()
        broken.send_json.side_effect = RuntimeError("closed")
        await manager.connect(healthy)
        await manager.connect(broken)

        delivered = await manager.broadcast({"type": "progress", "progress": 0.5})

        assert delivered == 1
        healthy.send_json.assert_awaited_once_with({"type": "progress", "progress": 0.5})

    async def test_close_all_closes_and_forgets(self, manager) -> None:
        sockets = [make_socket(), make_socket()]
        for websocket in sockets:
            await manager.connect(websocket)

        await manager.close_all()

        for websocket in sockets:
            websocket.close.assert_awaited_once_with(code=1001, reason="Server shutdown")
        assert manager.get_status()["active_sessions"] == 0
