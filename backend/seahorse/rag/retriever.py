"""
RAG Retriever Module

Formats retrieved chunks into the context block injected into prompts, and
turns search results into context items for display.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from seahorse.rag.vector_store import SearchResult

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n"

_SUBJECT_PATTERN = re.compile(r"Subject:\s*([^\n]+)")
_EVENT_PATTERN = re.compile(r"Event:\s*([^\n]+)")


@dataclass(frozen=True)
class ContextItem:
    """A retrieved chunk classified for display in a context panel."""

    id: str
    type: str  # email, calendar, document
    title: str
    content: str
    score: float
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "score": self.score,
            "timestamp": self.timestamp,
        }


def format_context(results: Sequence[SearchResult]) -> str:
    """
    Join retrieved chunk texts into a single context block.

    Args:
        results: Search results, already in descending score order.

    Returns:
        Chunk texts separated by blank lines, or "" when there are none.
    """
    return CONTEXT_SEPARATOR.join(result.chunk.text for result in results)


def classify_content(content: str) -> tuple[str, str]:
    """
    Guess what kind of record a chunk came from.

    Emails are recognised by Subject/From headers and calendar entries by an
    Event line; everything else is a plain document.

    Returns:
        Tuple of (type, title).
    """
    if "Subject:" in content and "From:" in content:
        match = _SUBJECT_PATTERN.search(content)
        return "email", (match.group(1).strip() if match else "") or "No Subject"

    if "Event:" in content:
        match = _EVENT_PATTERN.search(content)
        return "calendar", (match.group(1).strip() if match else "") or "Untitled Event"

    return "document", "Document"


def build_context_items(results: Sequence[SearchResult]) -> List[ContextItem]:
    """Convert search results into context items, keeping score order."""
    items = []
    for result in results:
        item_type, title = classify_content(result.chunk.text)
        items.append(
            ContextItem(
                id=f"{result.chunk.parent_document_id}#{result.chunk.ordinal}",
                type=item_type,
                title=title,
                content=result.chunk.text,
                score=result.score,
                timestamp=result.chunk.metadata.get("timestamp"),
            )
        )
    return items
