"""
Shared test fixtures and fakes.

Provides: settings without .env, a recording chat model, registries and an
offline embedding service, plus a factory for wired agents.
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from seahorse.config import Settings
from seahorse.rag.vector_store import EmbeddingBackend, EmbeddingService, HashingEmbeddingBackend
from seahorse.services.agent import Agent
from seahorse.services.llm import ChatMessage, ChatModel, TokenCallback, emit_token
from seahorse.services.registry import InMemoryProviderRegistry, ProviderRegistry

DIMENSION = 64


class RecordingChatModel(ChatModel):
    """Chat model that records every prompt and streams a fixed reply."""

    name = "recording"

    def __init__(
        self,
        tokens: Optional[List[str]] = None,
        fail_initialize: int = 0,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.tokens = tokens if tokens is not None else ["Hello", " there", "!"]
        self.fail_initialize = fail_initialize
        self.error = error
        self.delay = delay
        self.initialize_calls = 0
        self.calls: List[List[ChatMessage]] = []

    async def initialize(self, progress_callback=None) -> None:
        self.initialize_calls += 1
        if self.initialize_calls <= self.fail_initialize:
            raise RuntimeError("model unavailable")

    async def generate(
        self,
        messages: List[ChatMessage],
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        self.calls.append(list(messages))
        for token in self.tokens:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            await emit_token(on_token, token)
        return "".join(self.tokens)

    @property
    def last_system_prompt(self) -> str:
        return self.calls[-1][0].content


class FailingRegistry(ProviderRegistry):
    """Registry whose every call fails."""

    async def get_all_providers(self):
        raise ConnectionError("registry down")

    async def get_provider_data(self, provider_id: str):
        raise ConnectionError("registry down")


class PartiallyFailingRegistry(InMemoryProviderRegistry):
    """In-memory registry that fails for selected providers."""

    def __init__(self, providers, data, failing: List[str]) -> None:
        super().__init__(providers, data)
        self.failing = set(failing)

    async def get_provider_data(self, provider_id: str):
        if provider_id in self.failing:
            raise ConnectionError(f"{provider_id} unreachable")
        return await super().get_provider_data(provider_id)


class FixedEmbeddingBackend(EmbeddingBackend):
    """Returns preset vectors by exact text, zero vectors otherwise."""

    def __init__(self, vectors: Dict[str, List[float]], dimension: int) -> None:
        self.vectors = vectors
        self.dimension = dimension
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self.vectors.get(text, [0.0] * self.dimension) for text in texts]


class BrokenEmbeddingBackend(EmbeddingBackend):
    async def embed(self, texts: List[str]) -> List[List[float]]:
        raise ConnectionError("embedding API down")


def make_provider(provider_id: str, name: str = "", score: int = 50) -> dict:
    return {
        "id": provider_id,
        "name": name or f"Provider {provider_id}",
        "valueScore": score,
        "walletAddress": f"{provider_id.lower()}.testnet",
    }


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key="",
        registry_backend="memory",
        embedding_backend="hashing",
        embedding_dimension=DIMENSION,
        model_load_retries=3,
        model_load_retry_delay=0.0,
        generation_timeout=5.0,
        provider_fetch_timeout=5.0,
    )


@pytest.fixture
def embedding_service() -> EmbeddingService:
    return EmbeddingService(HashingEmbeddingBackend(dimension=DIMENSION), dimension=DIMENSION)


@pytest.fixture
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()


@pytest.fixture
def two_provider_registry() -> InMemoryProviderRegistry:
    """P1 with three items and P2 with two, each 50 characters long."""
    providers = [make_provider("P1"), make_provider("P2")]
    data = {
        "P1": [{"id": f"i{n}", "content": f"provider one item {n} ".ljust(50, "x")} for n in range(3)],
        "P2": [{"id": f"j{n}", "content": f"provider two item {n} ".ljust(50, "y")} for n in range(2)],
    }
    return InMemoryProviderRegistry(providers, data)


@pytest.fixture
def make_agent(test_settings, chat_model, embedding_service):
    """Factory building agents with fakes; defaults to an empty registry."""

    def factory(registry: Optional[ProviderRegistry] = None, **overrides) -> Agent:
        return Agent(
            chat_model=overrides.get("chat_model", chat_model),
            registry=registry if registry is not None else InMemoryProviderRegistry(),
            embedding_service=overrides.get("embedding_service", embedding_service),
            config=overrides.get("config", test_settings),
        )

    return factory
