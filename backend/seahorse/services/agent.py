"""
Agent Service - Retrieval-Augmented Chat

Drives the staged initialization (model, embeddings, index, provider data,
chains), then answers questions. Questions go through the context-grounded
chain, with retrieved chunks when the index has any; the default chain is an
explicit bypass for ungrounded replies.

All pipeline state lives in an AgentContext owned by one Agent, so several
agents can run side by side without sharing anything.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from seahorse.config import Settings, settings as default_settings
from seahorse.exceptions import (
    DimensionError,
    EmbeddingError,
    GenerationError,
    InitializationError,
    NotReadyError,
)
from seahorse.models.schemas import ProgressReport, RagUpdate
from seahorse.rag.ingestion import (
    Chunk,
    Document,
    DocumentChunker,
    ProgressCallback,
    ProviderDataFetcher,
    emit_progress,
    make_note_documents,
)
from seahorse.rag.retriever import ContextItem, build_context_items, format_context
from seahorse.rag.vector_store import (
    EmbeddingService,
    SearchResult,
    VectorIndex,
    create_embedding_service,
)
from seahorse.services.chains import PromptChain, build_default_chain, build_rag_chain
from seahorse.services.llm import ChatModel, TokenCallback, create_chat_model, emit_token
from seahorse.services.registry import ProviderRegistry, create_provider_registry
from seahorse.services.streaming import TokenStream

logger = logging.getLogger(__name__)


class AgentState(str, Enum):
    """Lifecycle states of an agent."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class AgentContext:
    """Everything one agent needs to ingest, retrieve and generate."""

    config: Settings
    chat_model: ChatModel
    registry: ProviderRegistry
    embedder: Optional[EmbeddingService] = None
    chunker: Optional[DocumentChunker] = None
    index: Optional[VectorIndex] = None
    rag_chain: Optional[PromptChain] = None
    default_chain: Optional[PromptChain] = None
    state: AgentState = AgentState.UNINITIALIZED
    is_vector_store_empty: bool = True
    last_progress: Optional[ProgressReport] = None
    last_context: List[ContextItem] = field(default_factory=list)
    index_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ProgressTracker:
    """
    Emits progress reports for one initialize() call.

    Progress never decreases: lower values from nested stages are raised to
    the last reported value.
    """

    def __init__(self, context: AgentContext, callback: Optional[ProgressCallback]) -> None:
        self.context = context
        self.callback = callback
        self.last = 0.0
        self.rag_update: Optional[RagUpdate] = None

    async def report(
        self,
        message: str,
        progress: float,
        rag_update: Optional[RagUpdate] = None,
    ) -> None:
        await self.forward(ProgressReport(message=message, progress=progress, rag_update=rag_update))

    async def forward(self, report: ProgressReport) -> None:
        progress = max(report.progress, self.last)
        if progress != report.progress:
            report = report.model_copy(update={"progress": progress})
        if report.rag_update is not None:
            self.rag_update = report.rag_update

        self.last = progress
        self.context.last_progress = report
        await emit_progress(self.callback, report)

    def scaled(self, low: float, high: float) -> ProgressCallback:
        """Callback mapping a nested stage's [0, 1] progress into [low, high]."""

        async def callback(report: ProgressReport) -> None:
            progress = low + (high - low) * min(max(report.progress, 0.0), 1.0)
            await self.forward(report.model_copy(update={"progress": progress}))

        return callback


async def run_cancellable(awaitable: Awaitable[Any], cancel_event: Optional[asyncio.Event]) -> Any:
    """
    Await a coroutine, abandoning it if cancel_event is set first.

    The wrapped work is also cancelled, and awaited, when the caller itself
    is cancelled, so nothing keeps running after this returns or raises.

    Raises:
        asyncio.CancelledError: If the event fired before completion.
    """
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            if cancel_event.is_set():
                raise asyncio.CancelledError("Operation cancelled")

    return task.result()


class Agent:
    """
    Retrieval-augmented conversational agent.

    Lifecycle: UNINITIALIZED -> LOADING -> READY or ERROR. ERROR is terminal;
    a fresh Agent is needed to retry.
    """

    def __init__(
        self,
        chat_model: Optional[ChatModel] = None,
        registry: Optional[ProviderRegistry] = None,
        embedding_service: Optional[EmbeddingService] = None,
        config: Optional[Settings] = None,
    ) -> None:
        config = config or default_settings
        self.context = AgentContext(
            config=config,
            chat_model=chat_model or create_chat_model(config),
            registry=registry or create_provider_registry(config),
        )
        self._embedding_service = embedding_service
        self._on_token: Optional[TokenCallback] = None
        self.stream = TokenStream()

        logger.info(
            f"Agent created - model: {self.context.chat_model.name}, "
            f"chunk_size: {config.chunk_size}, overlap: {config.chunk_overlap}"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        return self.context.state

    @property
    def is_ready(self) -> bool:
        return self.context.state == AgentState.READY

    @property
    def is_vector_store_empty(self) -> bool:
        return self.context.is_vector_store_empty

    @property
    def index(self) -> Optional[VectorIndex]:
        return self.context.index

    @property
    def last_context(self) -> List[ContextItem]:
        return list(self.context.last_context)

    def _require_ready(self) -> None:
        if self.context.state != AgentState.READY:
            raise NotReadyError(f"Agent is not ready (state={self.context.state.value})")

    def get_status(self) -> Dict[str, Any]:
        """Summary of the agent for status endpoints."""
        ctx = self.context
        return {
            "state": ctx.state.value,
            "is_vector_store_empty": ctx.is_vector_store_empty,
            "index_size": ctx.index.size if ctx.index else 0,
            "last_progress": ctx.last_progress.to_dict() if ctx.last_progress else None,
        }

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Run every setup stage, reporting progress along the way.

        Args:
            progress_callback: Receives ProgressReports (sync or async).
            cancel_event: Abandons initialization when set.

        Raises:
            InitializationError: If any stage fails; the agent moves to ERROR.
            asyncio.CancelledError: If cancelled; the agent moves to ERROR.
        """
        ctx = self.context
        if ctx.state != AgentState.UNINITIALIZED:
            raise InitializationError(f"Agent cannot be initialized from state {ctx.state.value}")

        ctx.state = AgentState.LOADING
        tracker = ProgressTracker(ctx, progress_callback)

        try:
            await run_cancellable(self._initialize_stages(tracker), cancel_event)
        except asyncio.CancelledError:
            ctx.state = AgentState.ERROR
            logger.warning("Initialization cancelled")
            await tracker.report("Initialization cancelled", tracker.last)
            raise
        except Exception as e:
            ctx.state = AgentState.ERROR
            logger.error(f"Error during initialization: {e}")
            await tracker.report(f"Error initializing system: {e}", tracker.last)
            if isinstance(e, InitializationError):
                raise
            raise InitializationError(f"Initialization failed: {e}") from e

    async def _initialize_stages(self, tracker: ProgressTracker) -> None:
        ctx = self.context
        config = ctx.config

        await tracker.report("Loading AI model...", 0.1)
        await self._load_model(tracker)
        await tracker.report("AI model loaded", 0.5)

        await tracker.report("Initializing embeddings...", 0.6)
        ctx.embedder = self._embedding_service or create_embedding_service(config)
        ctx.chunker = DocumentChunker(chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)

        await tracker.report("Setting up vector store...", 0.7)
        ctx.index = VectorIndex(dimension=ctx.embedder.dimension)

        await tracker.report("Loading provider data...", 0.8)
        fetcher = ProviderDataFetcher(ctx.registry, timeout=config.provider_fetch_timeout)
        documents = await fetcher.fetch_all(tracker.forward)
        if documents:
            added = await self._index_documents(documents)
            logger.info(f"Indexed {added} chunks from {len(documents)} provider documents")

        await tracker.report("Finalizing setup...", 0.9)
        ctx.rag_chain = build_rag_chain(ctx.chat_model)
        ctx.default_chain = build_default_chain(ctx.chat_model)

        await tracker.report("Ready!", 1.0, rag_update=tracker.rag_update)
        ctx.state = AgentState.READY

    async def _load_model(self, tracker: ProgressTracker) -> None:
        """Initialize the chat model, retrying with exponential backoff."""
        config = self.context.config
        attempts = max(1, config.model_load_retries)

        for attempt in range(1, attempts + 1):
            try:
                await self.context.chat_model.initialize(tracker.scaled(0.1, 0.5))
                return
            except Exception as e:
                if attempt >= attempts:
                    raise InitializationError(
                        f"Failed to load chat model after {attempts} attempts: {e}"
                    ) from e

                wait_time = config.model_load_retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Model load failed (attempt {attempt}/{attempts}): {e}. "
                    f"Retrying in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)

    async def _index_documents(self, documents: Sequence[Document]) -> int:
        """Chunk, embed and append documents; returns the number of chunks added."""
        ctx = self.context
        chunks = ctx.chunker.split(documents)
        if not chunks:
            return 0

        vectors = await ctx.embedder.embed_batch([chunk.text for chunk in chunks])
        async with ctx.index_lock:
            ctx.index.add(chunks, vectors)
            ctx.is_vector_store_empty = False
        return len(chunks)

    # ------------------------------------------------------------------
    # Ingestion and retrieval
    # ------------------------------------------------------------------

    async def embed_texts(self, texts: Sequence[str]) -> int:
        """
        Add caller-supplied notes to the index.

        Returns:
            Number of chunks added (0 if embedding failed).
        """
        self._require_ready()
        documents = make_note_documents(texts)

        try:
            added = await self._index_documents(documents)
        except EmbeddingError as e:
            logger.error(f"Failed to embed texts: {e}")
            return 0

        logger.info(f"Embedded {len(documents)} notes into {added} chunks")
        return added

    async def _search(self, query: str, k: int) -> List[SearchResult]:
        ctx = self.context
        if ctx.is_vector_store_empty or ctx.index is None or ctx.index.is_empty():
            logger.debug("Vector store is empty, returning no results")
            return []

        try:
            query_vector = await ctx.embedder.embed(query)
            return ctx.index.search(query_vector, k)
        except EmbeddingError as e:
            logger.warning(f"Query embedding failed, answering without context: {e}")
            return []
        except DimensionError as e:
            # Embedder and index no longer agree; no query can be served
            ctx.state = AgentState.ERROR
            logger.error(f"Query vector dimension mismatch: {e}")
            raise

    async def search_similar(self, query: str, k: int) -> List[Tuple[Chunk, float]]:
        """Return the k most similar chunks with their scores."""
        self._require_ready()
        results = await self._search(query, k)
        return [(result.chunk, result.score) for result in results]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def set_streaming_callback(self, callback: Optional[TokenCallback]) -> None:
        """Replace the single token sink used by generate_response."""
        self._on_token = callback

    def subscribe(self) -> asyncio.Queue:
        """Listen to token events of every streamed generation."""
        return self.stream.subscribe()

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self.stream.unsubscribe(queue)

    async def generate_response(
        self,
        question: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Answer with the context-grounded chain, streaming tokens.

        Raises:
            NotReadyError: If the agent is not READY.
            GenerationError: If the chat model fails or times out.
            asyncio.CancelledError: If cancel_event fires first.
        """
        ctx = self.context
        tokens: List[str] = []

        async def on_token(token: str) -> None:
            tokens.append(token)
            await emit_token(self._on_token, token)
            self.stream.publish_token(token)

        try:
            self._require_ready()
            results = await self._search(question, ctx.config.search_top_k)
            ctx.last_context = build_context_items(results)
            context_text = format_context(results)
            logger.info(f"Answering with {len(results)} context chunks")

            text = await self._invoke(
                ctx.rag_chain, {"question": question, "context": context_text}, on_token, cancel_event
            )
            if not tokens and text:
                await on_token(text)
        except (asyncio.CancelledError, Exception) as e:
            self.stream.fail(e)
            raise

        answer = "".join(tokens)
        self.stream.complete(answer)
        return answer

    async def generate_direct_response(
        self,
        question: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Answer with the default chain; no retrieval, no streaming."""
        self._require_ready()
        return await self._invoke(self.context.default_chain, {"question": question}, None, cancel_event)

    async def _invoke(
        self,
        chain: PromptChain,
        inputs: Dict[str, Any],
        on_token: Optional[TokenCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        timeout = self.context.config.generation_timeout
        try:
            return await run_cancellable(
                asyncio.wait_for(chain.invoke(inputs, on_token=on_token), timeout),
                cancel_event,
            )
        except asyncio.CancelledError:
            logger.info(f"{chain.name} chain invocation cancelled")
            raise
        except asyncio.TimeoutError as e:
            raise GenerationError(f"Generation timed out after {timeout:.0f}s") from e
        except Exception as e:
            logger.error(f"Error generating response: {e}")
            raise GenerationError(f"Failed to generate response: {e}") from e
