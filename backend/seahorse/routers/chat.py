"""
Chat Endpoints

REST and WebSocket access to the agent:
- POST /api/chat: answer a question (grounded, or direct with "direct": true)
- POST /api/notes: embed caller-supplied notes into the index
- GET /api/status: agent lifecycle state
- WS /ws/chat: streamed answers plus initialization progress

Protocol (WebSocket):
- Client -> Server: {"type": "question", "question": "...", "direct": false}, {"type": "ping"}
- Server -> Client: progress, status, token, context, done, error, pong
"""

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from seahorse.exceptions import SeahorseError
from seahorse.models.schemas import (
    AgentStatus,
    ChatRequest,
    ChatResponse,
    ContextItemModel,
    DoneMessage,
    ErrorMessage,
    NotesRequest,
    NotesResponse,
    QuestionMessage,
    TokenMessage,
)
from seahorse.services.agent import Agent
from seahorse.services.connection_manager import ConnectionManager
from seahorse.services.streaming import DONE, ERROR

router = APIRouter()
logger = logging.getLogger(__name__)

# Global connection manager instance (shared across all connections)
manager = ConnectionManager()


def get_agent(request: Request) -> Agent:
    return request.app.state.agent


def _raise_http(error: SeahorseError) -> None:
    raise HTTPException(status_code=error.http_status, detail=error.message) from error


@router.post("/api/chat", response_model=ChatResponse, tags=["Chat"])
async def chat(body: ChatRequest, request: Request) -> ChatResponse:
    """Answer a question without streaming."""
    agent = get_agent(request)

    async with request.app.state.generation_lock:
        try:
            if body.direct:
                answer = await agent.generate_direct_response(body.question)
                context = []
            else:
                answer = await agent.generate_response(body.question)
                context = [ContextItemModel(**item.to_dict()) for item in agent.last_context]
        except SeahorseError as e:
            _raise_http(e)

    return ChatResponse(answer=answer, direct=body.direct, context=context)


@router.post("/api/notes", response_model=NotesResponse, tags=["Chat"])
async def add_notes(body: NotesRequest, request: Request) -> NotesResponse:
    """Chunk, embed and index caller-supplied notes."""
    agent = get_agent(request)
    try:
        added = await agent.embed_texts(body.texts)
    except SeahorseError as e:
        _raise_http(e)
    return NotesResponse(chunks_added=added)


@router.get("/api/status", response_model=AgentStatus, tags=["Chat"])
async def agent_status(request: Request) -> AgentStatus:
    """Get the agent lifecycle state."""
    return AgentStatus(**get_agent(request).get_status())


class ChatSessionHandler:
    """
    Handles a single chat WebSocket session.

    Generations are serialised across sessions by the app-wide lock, so the
    token listener only ever sees this session's answer.
    """

    def __init__(self, session_id: str, websocket: WebSocket, agent: Agent, lock: asyncio.Lock) -> None:
        self.session_id = session_id
        self.websocket = websocket
        self.agent = agent
        self.lock = lock

    async def send_error(self, code: str, message: str) -> None:
        await manager.send_message(self.session_id, ErrorMessage(code=code, message=message).model_dump())

    async def handle_question(self, message: QuestionMessage) -> None:
        manager.record_question(self.session_id)

        if not self.agent.is_ready:
            await self.send_error("NOT_READY", f"Agent is {self.agent.state.value}")
            return

        async with self.lock:
            if message.direct:
                await self._answer_direct(message.question)
            else:
                await self._answer_streaming(message.question)

    async def _answer_direct(self, question: str) -> None:
        try:
            answer = await self.agent.generate_direct_response(question)
        except SeahorseError as e:
            await self.send_error(e.stage.upper(), e.message)
            return
        await manager.send_message(self.session_id, DoneMessage(answer=answer).model_dump())

    async def _answer_streaming(self, question: str) -> None:
        cancel_event = asyncio.Event()
        queue = self.agent.subscribe()
        task = asyncio.create_task(self.agent.generate_response(question, cancel_event=cancel_event))

        try:
            while True:
                event = await queue.get()
                if event.type == DONE:
                    break
                if event.type == ERROR:
                    break

                sent = await manager.send_message(
                    self.session_id, TokenMessage(token=event.data).model_dump()
                )
                if not sent:
                    # Client is gone; abandon the generation
                    cancel_event.set()
        finally:
            self.agent.unsubscribe(queue)

        try:
            answer = await task
        except asyncio.CancelledError:
            logger.info(f"Session {self.session_id}: Generation cancelled")
            return
        except SeahorseError as e:
            await self.send_error(e.stage.upper(), e.message)
            return

        await manager.send_message(
            self.session_id,
            {"type": "context", "items": [item.to_dict() for item in self.agent.last_context]},
        )
        await manager.send_message(self.session_id, DoneMessage(answer=answer).model_dump())

    async def process(self, data: dict) -> None:
        msg_type = data.get("type", "unknown")

        if msg_type == "question":
            try:
                message = QuestionMessage.model_validate(data)
            except ValidationError as e:
                await self.send_error("INVALID_MESSAGE", f"Invalid question message: {e.error_count()} errors")
                return
            await self.handle_question(message)

        elif msg_type == "ping":
            await manager.send_message(self.session_id, {"type": "pong"})

        elif msg_type == "get_status":
            await manager.send_message(
                self.session_id, {"type": "status", "status": "active", "agent": self.agent.get_status()}
            )

        else:
            logger.debug(f"Session {self.session_id}: Unknown message type: {msg_type}")


@router.websocket("/ws/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for streamed chat.

    Sends initialization progress to every connected session, then streams
    answer tokens followed by the retrieved context and the full answer.
    """
    session_id = await manager.connect(websocket)
    agent: Agent = websocket.app.state.agent
    handler = ChatSessionHandler(session_id, websocket, agent, websocket.app.state.generation_lock)

    try:
        await manager.send_message(
            session_id,
            {
                "type": "status",
                "status": "connected",
                "session_id": session_id,
                "agent": agent.get_status(),
            },
        )

        while True:
            try:
                text = await websocket.receive_text()
                await handler.process(json.loads(text))
            except json.JSONDecodeError as e:
                logger.warning(f"Session {session_id}: Invalid JSON: {e}")
                await handler.send_error("INVALID_JSON", "Invalid JSON message")

    except WebSocketDisconnect:
        logger.info(f"Session {session_id}: WebSocket disconnected")

    finally:
        await manager.disconnect(session_id)


@router.get("/ws/status", tags=["Chat"])
async def websocket_status() -> dict:
    """Get status of active WebSocket connections."""
    return manager.get_status()
