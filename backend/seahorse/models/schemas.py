"""
Pydantic Schemas

Defines the registry payloads validated at ingestion, the progress channel
reported during initialization, and the request/response messages exchanged
with chat clients over HTTP and WebSocket.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DocumentType = Literal["email", "calendar", "document", "note"]


# =============================================================================
# Provider Registry Payloads
# =============================================================================


class Provider(BaseModel):
    """A data provider listed in the registry."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    value_score: int = Field(..., alias="valueScore", ge=1, le=100)
    wallet_address: str = Field(..., alias="walletAddress")


class DataItem(BaseModel):
    """A raw data item published by a provider."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1)
    content: str


# =============================================================================
# Progress Channel
# =============================================================================


class RagUpdate(BaseModel):
    """Ingestion counters attached to a progress report."""

    model_config = ConfigDict(populate_by_name=True)

    type: DocumentType = "document"
    total: Optional[int] = None
    completed: Optional[int] = None
    error: Optional[int] = None
    in_progress: Optional[int] = Field(None, alias="inProgress")


class ProgressReport(BaseModel):
    """Progress update emitted while the agent initializes."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    progress: float = Field(0.0, ge=0.0, le=1.0)
    rag_update: Optional[RagUpdate] = Field(None, alias="ragUpdate")

    def to_dict(self) -> dict:
        """Convert to the camelCase dictionary consumed by UI clients."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Chat API
# =============================================================================


class ContextItemModel(BaseModel):
    """A retrieved chunk as shown in a context panel."""

    id: str
    type: Literal["email", "calendar", "document"]
    title: str
    content: str
    score: float
    timestamp: Optional[str] = None


class ChatRequest(BaseModel):
    """Question submitted over HTTP."""

    question: str = Field(..., min_length=1, description="The user's question")
    direct: bool = Field(False, description="Bypass retrieval and use the default chain")


class ChatResponse(BaseModel):
    """Answer returned over HTTP."""

    answer: str
    direct: bool = False
    context: List[ContextItemModel] = Field(default_factory=list)


class NotesRequest(BaseModel):
    """Caller-supplied notes to embed into the index."""

    texts: List[str] = Field(..., min_length=1)


class NotesResponse(BaseModel):
    """Result of a notes ingestion."""

    chunks_added: int


class AgentStatus(BaseModel):
    """Agent lifecycle state."""

    state: str
    is_vector_store_empty: bool
    index_size: int
    last_progress: Optional[dict] = None


# =============================================================================
# WebSocket Messages
# =============================================================================


class QuestionMessage(BaseModel):
    """Question message from client."""

    type: Literal["question"] = "question"
    question: str = Field(..., min_length=1)
    direct: bool = False


class TokenMessage(BaseModel):
    """Streamed token to client."""

    type: Literal["token"] = "token"
    token: str


class DoneMessage(BaseModel):
    """Terminal message carrying the full answer."""

    type: Literal["done"] = "done"
    answer: str


class ErrorMessage(BaseModel):
    """Error message to client."""

    type: Literal["error"] = "error"
    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error description")
