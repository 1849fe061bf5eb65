"""Embedding service module."""

from iconsearch.embeddings.service import (
    EmbeddingService,
    SentenceTransformerEmbeddingService,
    create_embedding_service,
    fallback_embedding,
)

__all__ = [
    "EmbeddingService",
    "SentenceTransformerEmbeddingService",
    "create_embedding_service",
    "fallback_embedding",
]
