"""
Vector Store Module

Provides the in-memory vector index used for similarity search and the
embedding service that feeds it. The index is exact: every query is scored
against every stored vector by cosine similarity.
"""

import asyncio
import hashlib
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np
from google import genai
from google.genai import types

from seahorse.config import Settings, settings as default_settings
from seahorse.exceptions import DimensionError, EmbeddingError
from seahorse.rag.ingestion import Chunk

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class SearchResult:
    """Result from a vector similarity search."""

    id: int
    chunk: Chunk
    score: float  # Cosine similarity (higher = more similar)

    @property
    def content(self) -> str:
        return self.chunk.text


@dataclass(frozen=True)
class IndexEntry:
    """A stored vector together with the chunk it was computed from."""

    id: int
    vector: tuple
    chunk: Chunk


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    A zero-norm vector has no direction; its similarity to anything is 0.0.
    """
    if len(vec_a) != len(vec_b):
        raise DimensionError(len(vec_a), len(vec_b))

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b)) / (norm_a * norm_b)


class VectorIndex:
    """
    Append-only in-memory vector index.

    Ids are assigned sequentially from 0 at insertion and never reused.
    Search is exhaustive cosine similarity; ties are broken by insertion id.
    """

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")

        self.dimension = dimension
        self._entries: List[IndexEntry] = []
        self._matrix = np.empty((0, dimension), dtype=np.float64)
        self._norms = np.empty((0,), dtype=np.float64)

        logger.info(f"VectorIndex initialized: dimension={dimension}")

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def size(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def add(self, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]) -> List[int]:
        """
        Append chunks with their vectors.

        Args:
            chunks: Chunks to store, in insertion order.
            vectors: One vector per chunk, each of the index dimension.

        Returns:
            The ids assigned to the chunks, in input order.
        """
        if len(chunks) != len(vectors):
            raise ValueError("chunks and vectors must have the same length")
        if not chunks:
            return []

        for vector in vectors:
            if len(vector) != self.dimension:
                raise DimensionError(self.dimension, len(vector))

        block = np.asarray(vectors, dtype=np.float64).reshape(len(vectors), self.dimension)
        start = len(self._entries)
        ids = list(range(start, start + len(chunks)))

        self._matrix = np.vstack([self._matrix, block])
        self._norms = np.concatenate([self._norms, np.linalg.norm(block, axis=1)])
        for entry_id, chunk, row in zip(ids, chunks, block):
            self._entries.append(IndexEntry(id=entry_id, vector=tuple(row.tolist()), chunk=chunk))

        logger.info(f"Added {len(ids)} chunks to index (size={len(self._entries)})")
        return ids

    def get(self, entry_id: int) -> IndexEntry:
        return self._entries[entry_id]

    def search(self, query_vector: Sequence[float], k: int) -> List[SearchResult]:
        """
        Find the k stored chunks most similar to the query vector.

        Args:
            query_vector: Query embedding of the index dimension.
            k: Maximum number of results (k >= 0).

        Returns:
            Up to min(k, size) results ordered by score descending, then id ascending.
        """
        if k < 0:
            raise ValueError("k must be non-negative")
        if not self._entries or k == 0:
            return []
        if len(query_vector) != self.dimension:
            raise DimensionError(self.dimension, len(query_vector))

        query = np.asarray(query_vector, dtype=np.float64)
        query_norm = float(np.linalg.norm(query))

        denominators = self._norms * query_norm
        dots = self._matrix @ query
        scores = np.zeros(len(self._entries), dtype=np.float64)
        nonzero = denominators > 0
        scores[nonzero] = dots[nonzero] / denominators[nonzero]

        # Primary key is the last one: score descending, then id ascending
        order = np.lexsort((np.arange(len(scores)), -scores))[:k]

        results = [
            SearchResult(id=int(i), chunk=self._entries[i].chunk, score=float(scores[i]))
            for i in order
        ]
        logger.debug(f"Search returned {len(results)} results")
        return results

    def get_stats(self) -> dict:
        """Get statistics about the index."""
        return {
            "size": len(self._entries),
            "dimension": self.dimension,
            "is_empty": self.is_empty(),
        }


class EmbeddingBackend(ABC):
    """Abstract text-to-vector capability."""

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts, preserving order."""
        pass


class GeminiEmbeddingBackend(EmbeddingBackend):
    """
    Generates embeddings using Google's Gemini embedding model.

    The output dimensionality is pinned to the service dimension so every
    vector fits the index.
    """

    def __init__(self, api_key: str, model: str, dimension: int) -> None:
        self.model = model
        self.dimension = dimension
        self._client = genai.Client(api_key=api_key)
        logger.info(f"Gemini embedding backend initialized with model: {model}")

    async def embed(self, texts: List[str]) -> List[List[float]]:
        result = await self._client.aio.models.embed_content(
            model=self.model,
            contents=texts,
            config=types.EmbedContentConfig(output_dimensionality=self.dimension),
        )
        if not result.embeddings:
            raise EmbeddingError("No embeddings returned from API")
        return [list(embedding.values) for embedding in result.embeddings]


class SentenceTransformerEmbeddingBackend(EmbeddingBackend):
    """
    Local embeddings from a SentenceTransformer model (all-MiniLM-L6-v2 by default).

    The model is loaded on first use and encoding runs in a worker thread so
    the event loop stays responsive.
    """

    def __init__(self, model_name: str, dimension: int, model: Optional[Any] = None) -> None:
        self.model_name = model_name
        self.dimension = dimension
        self._model = model

    def _get_model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading local embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name, device="cpu")
        return self._model

    def _encode(self, texts: List[str]) -> List[List[float]]:
        embeddings = self._get_model().encode(
            texts,
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return np.asarray(embeddings, dtype=np.float64).reshape(len(texts), -1).tolist()

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, texts)


class HashingEmbeddingBackend(EmbeddingBackend):
    """
    Deterministic offline embeddings.

    Lowercase word tokens are hashed into fixed buckets and weighted by term
    frequency, then L2-normalised. Texts sharing words score high against each
    other; texts with no tokens map to the zero vector.
    """

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension

    def _token_index(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self.dimension

    def embed_one(self, text: str) -> List[float]:
        tokens = _TOKEN_PATTERN.findall(text.lower())
        vector = [0.0] * self.dimension
        if not tokens:
            return vector

        counts: dict[str, int] = {}
        for token in tokens:
            counts[token] = counts.get(token, 0) + 1

        # Sorted so float accumulation order is stable
        for token in sorted(counts):
            vector[self._token_index(token)] += float(counts[token])

        norm = math.sqrt(sum(x * x for x in vector))
        return [x / norm for x in vector]

    async def embed(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_one(text) for text in texts]


class EmbeddingService:
    """
    Maps text to fixed-dimension vectors.

    Wraps an EmbeddingBackend, batches requests and checks every returned
    vector against the dimension declared at construction.
    """

    def __init__(self, backend: EmbeddingBackend, dimension: int, batch_size: int = 100) -> None:
        self.backend = backend
        self.dimension = dimension
        self.batch_size = batch_size

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per text, in input order.

        Raises:
            EmbeddingError: If the backend fails or returns the wrong count.
            DimensionError: If a vector does not match the service dimension.
        """
        texts = list(texts)
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            try:
                vectors = await self.backend.embed(batch)
            except EmbeddingError:
                raise
            except Exception as e:
                logger.error(f"Failed to generate embeddings: {e}")
                raise EmbeddingError(f"Embedding backend failed: {e}") from e

            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding backend returned {len(vectors)} vectors for {len(batch)} texts"
                )
            for vector in vectors:
                if len(vector) != self.dimension:
                    raise DimensionError(self.dimension, len(vector))

            embeddings.extend([float(x) for x in vector] for vector in vectors)

            if i + self.batch_size < len(texts):
                logger.debug(f"Processed {i + self.batch_size}/{len(texts)} embeddings")

        return embeddings


def create_embedding_service(config: Optional[Settings] = None) -> EmbeddingService:
    """
    Build the embedding service for the configured backend.

    "auto" uses Gemini when an API key is configured, otherwise the local
    SentenceTransformer model. "hashing" is the dependency-free backend.

    Raises:
        ValueError: If the configured backend is not supported.
    """
    config = config or default_settings

    backend_name = config.embedding_backend
    if backend_name == "auto":
        backend_name = "gemini" if config.gemini_api_key else "local"

    if backend_name == "gemini":
        backend: EmbeddingBackend = GeminiEmbeddingBackend(
            api_key=config.gemini_api_key,
            model=config.embedding_model,
            dimension=config.embedding_dimension,
        )
    elif backend_name == "local":
        logger.info("Using local SentenceTransformer embeddings")
        backend = SentenceTransformerEmbeddingBackend(
            model_name=config.local_embedding_model,
            dimension=config.embedding_dimension,
        )
    elif backend_name == "hashing":
        logger.warning("Using offline hashing embeddings (keyword overlap only)")
        backend = HashingEmbeddingBackend(dimension=config.embedding_dimension)
    else:
        raise ValueError(f"Unsupported embedding backend: {config.embedding_backend}")

    return EmbeddingService(backend=backend, dimension=config.embedding_dimension)
