"""
Token Streaming

A channel of token events for one agent. Each generation publishes its
tokens in order followed by exactly one terminal event (done or error).
Any number of listeners can subscribe; each gets its own queue.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

TOKEN = "token"
DONE = "done"
ERROR = "error"


@dataclass(frozen=True)
class TokenEvent:
    """A streamed token or a terminal event."""

    type: str  # token, done, error
    data: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.type in (DONE, ERROR)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"type": self.type, "data": self.data}


class TokenStream:
    """Fan-out of token events to subscribed listener queues."""

    def __init__(self) -> None:
        self._listeners: List[asyncio.Queue] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, maxsize: int = 0) -> asyncio.Queue:
        """Register a new listener and return its queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._listeners:
            self._listeners.remove(queue)

    def _publish(self, event: TokenEvent) -> None:
        for queue in list(self._listeners):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event.type} event for a slow listener")

    def publish_token(self, token: str) -> None:
        self._publish(TokenEvent(type=TOKEN, data=token))

    def complete(self, text: str) -> None:
        self._publish(TokenEvent(type=DONE, data=text))

    def fail(self, error: Optional[BaseException] = None) -> None:
        self._publish(TokenEvent(type=ERROR, data=str(error) if error else ""))
