"""
RAG (Retrieval-Augmented Generation) Pipeline

This package provides the knowledge retrieval infrastructure for the agent.

Modules:
    - ingestion: provider data fetching, Documents and chunking
    - vector_store: embedding service and the in-memory cosine-similarity index
    - retriever: context formatting and context-item classification
    - cli: command-line interface for asking questions and adding notes

Usage:
    from seahorse.rag import DocumentChunker, VectorIndex, create_embedding_service

    chunker = DocumentChunker(chunk_size=500, chunk_overlap=50)
    embedder = create_embedding_service()
    index = VectorIndex(dimension=embedder.dimension)

    chunks = chunker.split(documents)
    index.add(chunks, await embedder.embed_batch([c.text for c in chunks]))
    results = index.search(await embedder.embed("when is team sync"), k=10)
"""

from seahorse.rag.ingestion import (
    Chunk,
    Document,
    DocumentChunker,
    ProviderDataFetcher,
    make_note_documents,
)
from seahorse.rag.vector_store import (
    EmbeddingBackend,
    EmbeddingService,
    GeminiEmbeddingBackend,
    HashingEmbeddingBackend,
    SentenceTransformerEmbeddingBackend,
    SearchResult,
    VectorIndex,
    cosine_similarity,
    create_embedding_service,
)
from seahorse.rag.retriever import (
    ContextItem,
    build_context_items,
    classify_content,
    format_context,
)

__all__ = [
    # Ingestion
    "Chunk",
    "Document",
    "DocumentChunker",
    "ProviderDataFetcher",
    "make_note_documents",
    # Vector Store
    "EmbeddingBackend",
    "EmbeddingService",
    "GeminiEmbeddingBackend",
    "HashingEmbeddingBackend",
    "SentenceTransformerEmbeddingBackend",
    "SearchResult",
    "VectorIndex",
    "cosine_similarity",
    "create_embedding_service",
    # Retriever
    "ContextItem",
    "build_context_items",
    "classify_content",
    "format_context",
]
