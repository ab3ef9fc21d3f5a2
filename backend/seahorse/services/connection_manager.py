"""
WebSocket Connection Manager

Tracks chat sessions so initialization progress can reach every open socket
and per-session answer statistics show up in /ws/status.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatSession:
    """One open chat socket and what has flowed through it."""

    session_id: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    questions: int = 0
    tokens_sent: int = 0
    answers_sent: int = 0

    def touch(self) -> None:
        self.last_activity = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "connected_at": self.connected_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "questions": self.questions,
            "tokens_sent": self.tokens_sent,
            "answers_sent": self.answers_sent,
        }


class ConnectionManager:
    """Registry of open chat sessions keyed by a generated id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        """Accept the socket and return its new session id."""
        await websocket.accept()
        session_id = str(uuid.uuid4())

        async with self._lock:
            self._sessions[session_id] = ChatSession(session_id=session_id, websocket=websocket)

        logger.info(f"Chat session {session_id} opened ({len(self._sessions)} open)")
        return session_id

    async def disconnect(self, session_id: str) -> None:
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session:
            logger.info(
                f"Chat session {session_id} closed: "
                f"{session.questions} questions, {session.answers_sent} answers"
            )

    async def send_message(self, session_id: str, message: Dict[str, Any]) -> bool:
        """
        Send one JSON message to a session.

        Returns:
            False when the session is unknown or the socket is gone.
        """
        session = self._sessions.get(session_id)
        if not session:
            logger.warning(f"No chat session {session_id} to send to")
            return False

        try:
            await session.websocket.send_json(message)
        except WebSocketDisconnect:
            logger.info(f"Chat session {session_id} went away mid-send")
            return False
        except Exception as e:
            logger.error(f"Send to chat session {session_id} failed: {e}")
            return False

        session.touch()
        if message.get("type") == "token":
            session.tokens_sent += 1
        elif message.get("type") == "done":
            session.answers_sent += 1
        return True

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send a message to every session; returns how many received it."""
        delivered = 0
        for session_id in list(self._sessions):
            if await self.send_message(session_id, message):
                delivered += 1
        return delivered

    def record_question(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session:
            session.questions += 1
            session.touch()

    async def close_all(self) -> None:
        """Close every socket on shutdown."""
        for session_id in list(self._sessions):
            session = self._sessions.get(session_id)
            if session:
                try:
                    await session.websocket.close(code=1001, reason="Server shutdown")
                except Exception as e:
                    logger.error(f"Closing chat session {session_id} failed: {e}")
            await self.disconnect(session_id)

    def get_status(self) -> Dict[str, Any]:
        return {
            "active_sessions": len(self._sessions),
            "sessions": [s.to_dict() for s in self._sessions.values()],
        }
