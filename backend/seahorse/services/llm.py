"""
Chat Model Service

The chat-generation capability behind the agent. Any model that can be
initialized and can generate a reply for a list of messages, streaming
tokens as they are produced, plugs in without changes to the agent.
"""

import asyncio
import inspect
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union

from google import genai
from google.genai import types

from seahorse.config import Settings, settings as default_settings
from seahorse.models.schemas import ProgressReport

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]
ModelProgressCallback = Callable[[ProgressReport], Union[None, Awaitable[None]]]


async def emit_token(callback: Optional[TokenCallback], token: str) -> None:
    """Deliver a token to a sync or async callback."""
    if callback is None:
        return
    result = callback(token)
    if inspect.isawaitable(result):
        await result


@dataclass(frozen=True)
class ChatMessage:
    """A single prompt message."""

    role: str  # system, user, assistant
    content: str


class ChatModel(ABC):
    """Abstract chat-generation capability."""

    name: str = "chat-model"

    @abstractmethod
    async def initialize(self, progress_callback: Optional[ModelProgressCallback] = None) -> None:
        """Load or warm the model."""
        pass

    @abstractmethod
    async def generate(
        self,
        messages: List[ChatMessage],
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        """
        Generate a reply.

        Args:
            messages: Prompt messages, system message first.
            on_token: Receives each token in generation order.

        Returns:
            The full reply, equal to the concatenation of streamed tokens.
        """
        pass


class GeminiChatModel(ChatModel):
    """
    Google Gemini chat model with streaming output.

    The system message is passed as the system instruction; remaining
    messages become the conversation contents.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        config = config or default_settings
        self.api_key = config.gemini_api_key
        self.model = config.gemini_model
        self.max_tokens = config.max_response_tokens
        self.temperature = config.temperature
        self.top_p = config.top_p
        self.name = self.model

        self._client: Optional[genai.Client] = None

        logger.info(
            f"GeminiChatModel created - model: {self.model}, "
            f"max_tokens: {self.max_tokens}, temperature: {self.temperature}"
        )

    async def initialize(self, progress_callback: Optional[ModelProgressCallback] = None) -> None:
        if not self.api_key:
            raise RuntimeError("Gemini API key not configured")

        self._client = genai.Client(api_key=self.api_key)
        # Fails fast when the model name is wrong or the key is rejected
        await self._client.aio.models.get(model=self.model)
        logger.info(f"Gemini model {self.model} ready")

    def _build_request(self, messages: List[ChatMessage]) -> tuple[Optional[str], list[dict]]:
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        return ("\n\n".join(system_parts) or None), contents

    async def generate(
        self,
        messages: List[ChatMessage],
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        if self._client is None:
            raise RuntimeError("Gemini model not initialized")

        system_instruction, contents = self._build_request(messages)
        config = types.GenerateContentConfig(
            max_output_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            system_instruction=system_instruction,
        )

        parts: List[str] = []
        stream = await self._client.aio.models.generate_content_stream(
            model=self.model,
            contents=contents,
            config=config,
        )
        async for chunk in stream:
            text = chunk.text
            if text:
                parts.append(text)
                await emit_token(on_token, text)

        return "".join(parts)


class MockChatModel(ChatModel):
    """
    Offline stand-in used when no Gemini key is configured.

    Replies with a short canned message and streams it word by word.
    """

    name = "mock"

    def __init__(self, token_delay: float = 0.0) -> None:
        self.token_delay = token_delay
        self.initialized = False

    async def initialize(self, progress_callback: Optional[ModelProgressCallback] = None) -> None:
        self.initialized = True

    def _reply_for(self, messages: List[ChatMessage]) -> str:
        question = next((m.content for m in reversed(messages) if m.role == "user"), "")
        system = next((m.content for m in messages if m.role == "system"), "")
        if "no extra knowledge" in system or "use this context" not in system:
            return f"hey! no model is connected right now, so i can't really answer \"{question}\" 😊"
        return f"hey! no model is connected right now, but i found some notes that may help with \"{question}\""

    async def generate(
        self,
        messages: List[ChatMessage],
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        reply = self._reply_for(messages)
        for token in re.findall(r"\S+\s*|\s+", reply):
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            await emit_token(on_token, token)
        return reply


def create_chat_model(config: Optional[Settings] = None) -> ChatModel:
    """Pick Gemini when configured, otherwise the offline mock."""
    config = config or default_settings
    if config.gemini_api_key:
        return GeminiChatModel(config)

    logger.warning("Gemini API key not configured - chat replies will use mock responses")
    return MockChatModel()
