"""Pydantic Models and Schemas."""

from seahorse.models.schemas import (
    AgentStatus,
    ChatRequest,
    ChatResponse,
    ContextItemModel,
    DataItem,
    DoneMessage,
    ErrorMessage,
    NotesRequest,
    NotesResponse,
    ProgressReport,
    Provider,
    QuestionMessage,
    RagUpdate,
    TokenMessage,
)

__all__ = [
    "AgentStatus",
    "ChatRequest",
    "ChatResponse",
    "ContextItemModel",
    "DataItem",
    "DoneMessage",
    "ErrorMessage",
    "NotesRequest",
    "NotesResponse",
    "ProgressReport",
    "Provider",
    "QuestionMessage",
    "RagUpdate",
    "TokenMessage",
]
