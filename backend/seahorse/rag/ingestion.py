"""
Document Ingestion Pipeline

Fetches provider data from the registry, wraps each item into a Document
with provenance metadata, and splits documents into overlapping chunks
ready for embedding.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from seahorse.config import settings
from seahorse.exceptions import ProviderFetchError, RegistryUnavailableError
from seahorse.models.schemas import DataItem, ProgressReport, Provider, RagUpdate

if TYPE_CHECKING:
    from seahorse.services.registry import ProviderRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressReport], Union[None, Awaitable[None]]]

FETCH_PROGRESS = 0.8


async def emit_progress(callback: Optional[ProgressCallback], report: ProgressReport) -> None:
    """Deliver a progress report to a sync or async callback."""
    if callback is None:
        return
    result = callback(report)
    if inspect.isawaitable(result):
        await result


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Document:
    """
    Represents a source document before chunking. Immutable once created.
    """

    id: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def doc_type(self) -> str:
        return self.metadata.get("type", "document")

    @property
    def source(self) -> str:
        return self.metadata.get("source", "")


@dataclass(frozen=True)
class Chunk:
    """
    Represents a contiguous slice of a Document's content.
    """

    parent_document_id: str
    ordinal: int
    text: str
    start_char: int
    end_char: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def token_estimate(self) -> int:
        """Rough token estimate (4 chars per token average)."""
        return len(self.text) // 4


class DocumentChunker:
    """
    Splits documents into fixed-size, overlapping character windows.

    The window advances by chunk_size - chunk_overlap characters; the final
    chunk of a document may be shorter. Output is fully determined by
    (content, chunk_size, chunk_overlap).
    """

    def __init__(self, chunk_size: int = 500, chunk_overlap: int = 50) -> None:
        self._validate(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @staticmethod
    def _validate(chunk_size: int, chunk_overlap: int) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must satisfy 0 <= overlap < chunk_size")

    def split_text(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ) -> List[Tuple[str, int, int]]:
        """
        Split text into windows.

        Returns:
            List of tuples: (chunk_text, start_char, end_char)
        """
        size = self.chunk_size if chunk_size is None else chunk_size
        overlap = self.chunk_overlap if chunk_overlap is None else chunk_overlap
        self._validate(size, overlap)

        if not text.strip():
            return []

        stride = size - overlap
        spans = []
        start = 0
        while True:
            end = min(start + size, len(text))
            spans.append((text[start:end], start, end))
            if end >= len(text):
                break
            start += stride

        return spans

    def split(
        self,
        documents: Sequence[Document],
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ) -> List[Chunk]:
        """
        Split documents into chunks, document by document.

        Args:
            documents: Documents to split, order preserved.
            chunk_size: Override the configured window size.
            chunk_overlap: Override the configured overlap.

        Returns:
            Ordered list of chunks carrying their parent's metadata.
        """
        chunks: List[Chunk] = []
        for document in documents:
            spans = self.split_text(document.content, chunk_size, chunk_overlap)
            if not spans:
                logger.debug(f"No chunks created for document: {document.id}")
                continue

            for ordinal, (text, start, end) in enumerate(spans):
                chunks.append(
                    Chunk(
                        parent_document_id=document.id,
                        ordinal=ordinal,
                        text=text,
                        start_char=start,
                        end_char=end,
                        metadata={
                            **document.metadata,
                            "chunk_index": ordinal,
                            "total_chunks": len(spans),
                        },
                    )
                )

        return chunks


def make_note_documents(texts: Sequence[str]) -> List[Document]:
    """Wrap caller-supplied text into note Documents."""
    timestamp = utc_timestamp()
    return [
        Document(
            id=f"note:{timestamp}:{i}",
            content=text,
            metadata={"source": "note", "type": "note", "timestamp": timestamp},
        )
        for i, text in enumerate(texts)
    ]


class ProviderDataFetcher:
    """
    Reads every provider and its data items from the registry.

    Failures are contained: a provider that cannot be fetched is skipped and
    counted as an error, and an unreachable registry yields no documents.
    """

    def __init__(self, registry: "ProviderRegistry", timeout: Optional[float] = None) -> None:
        self.registry = registry
        self.timeout = settings.provider_fetch_timeout if timeout is None else timeout

    async def _list_providers(self) -> Tuple[List[Provider], int]:
        """List and validate providers; returns (providers, rejected_count)."""
        try:
            payload = await asyncio.wait_for(self.registry.get_all_providers(), self.timeout)
        except asyncio.TimeoutError as e:
            raise RegistryUnavailableError("Timed out listing providers") from e
        except RegistryUnavailableError:
            raise
        except Exception as e:
            raise RegistryUnavailableError(f"Failed to list providers: {e}") from e

        if not isinstance(payload, list):
            raise RegistryUnavailableError(
                f"Malformed provider list: expected a list, got {type(payload).__name__}"
            )

        providers = []
        rejected = 0
        for raw in payload:
            try:
                providers.append(raw if isinstance(raw, Provider) else Provider.model_validate(raw))
            except ValidationError as e:
                rejected += 1
                logger.warning(f"Rejected malformed provider entry: {e.error_count()} errors")
        return providers, rejected

    async def _fetch_provider_items(self, provider: Provider) -> Tuple[List[DataItem], int]:
        """Fetch and validate one provider's items; returns (items, rejected_count)."""
        try:
            payload = await asyncio.wait_for(
                self.registry.get_provider_data(provider.id), self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderFetchError(f"Timed out fetching data for {provider.id}", provider.id) from e
        except Exception as e:
            raise ProviderFetchError(f"Failed to fetch data for {provider.id}: {e}", provider.id) from e

        if payload is None:
            return [], 0
        if not isinstance(payload, list):
            raise ProviderFetchError(
                f"Malformed data for {provider.id}: expected a list", provider.id
            )

        items = []
        rejected = 0
        for raw in payload:
            try:
                items.append(raw if isinstance(raw, DataItem) else DataItem.model_validate(raw))
            except ValidationError:
                rejected += 1
        if rejected:
            logger.warning(f"Rejected {rejected} malformed items from provider {provider.id}")
        return items, rejected

    def _to_document(self, provider: Provider, item: DataItem, timestamp: str) -> Document:
        return Document(
            id=f"{provider.id}:{item.id}",
            content=item.content,
            metadata={
                "source": "provider",
                "providerId": provider.id,
                "providerName": provider.name,
                "type": "document",
                "itemId": item.id,
                "timestamp": timestamp,
            },
        )

    async def fetch_all(self, progress_callback: Optional[ProgressCallback] = None) -> List[Document]:
        """
        Fetch all provider data as Documents.

        Args:
            progress_callback: Receives a sizing report once the item total is
                known and a final report with completed/error counts.

        Returns:
            Documents in provider order, then item order. Never raises for
            registry or provider failures.
        """
        try:
            providers, rejected_providers = await self._list_providers()
        except RegistryUnavailableError as e:
            logger.error(f"Error fetching provider data: {e}")
            await emit_progress(
                progress_callback,
                ProgressReport(
                    message="Error loading provider data",
                    progress=FETCH_PROGRESS,
                    rag_update=RagUpdate(type="document", error=1),
                ),
            )
            return []

        logger.info(f"Providers received: {len(providers)}")
        if not providers and not rejected_providers:
            return []

        # Single pass: collect items and the running total together
        collected: List[Tuple[Provider, List[DataItem]]] = []
        errors = rejected_providers
        for provider in providers:
            try:
                items, rejected = await self._fetch_provider_items(provider)
            except ProviderFetchError as e:
                logger.error(str(e))
                errors += 1
                continue
            errors += rejected
            collected.append((provider, items))

        total = sum(len(items) for _, items in collected)
        if total > 0:
            await emit_progress(
                progress_callback,
                ProgressReport(
                    message="Loading provider data...",
                    progress=FETCH_PROGRESS,
                    rag_update=RagUpdate(
                        type="document", total=total, completed=0, error=errors, in_progress=total
                    ),
                ),
            )

        timestamp = utc_timestamp()
        documents = [
            self._to_document(provider, item, timestamp)
            for provider, items in collected
            for item in items
        ]

        await emit_progress(
            progress_callback,
            ProgressReport(
                message="Provider data loaded",
                progress=FETCH_PROGRESS,
                rag_update=RagUpdate(
                    type="document",
                    total=total,
                    completed=len(documents),
                    error=errors,
                    in_progress=0,
                ),
            ),
        )

        logger.info(
            f"Fetched {len(documents)} documents from {len(collected)}/{len(providers)} providers "
            f"({errors} errors)"
        )
        return documents
