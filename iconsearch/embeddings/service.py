"""Embedding service interface and implementations."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from sentence_transformers import SentenceTransformer

from iconsearch.config import EmbeddingSettings, get_settings
from iconsearch.exceptions import EmbeddingError, ErrorCode
from iconsearch.logging_config import get_logger
from iconsearch.observability.metrics import set_fallback_mode, track_embedding_request
from iconsearch.utils.hashing import rolling_hash_units, truncated_remainder, utf16_units
from iconsearch.utils.timeout import with_timeout

logger = get_logger(__name__)

FALLBACK_WINDOW = 2


def fallback_embedding(text: str, dimensions: int = 128) -> list[float]:
    """Deterministic pseudo-embedding of ``text``.

    Each component hashes one two-character window of the lowercased text,
    so identical text always yields an identical vector. The values carry no
    semantics.
    """
    units = utf16_units(text.lower())
    vector = []
    for i in range(dimensions):
        window = units[i * FALLBACK_WINDOW : (i + 1) * FALLBACK_WINDOW]
        vector.append(truncated_remainder(rolling_hash_units(window), 1000) / 1000)
    return vector


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Load the model. Idempotent."""
        ...

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            The embedding vector.
        """
        ...

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, one after another."""
        return [await self.generate_embedding(text) for text in texts]

    @abstractmethod
    def is_using_fallback(self) -> bool:
        """Whether vectors come from the fallback vectorizer."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...


class SentenceTransformerEmbeddingService(EmbeddingService):
    """Embedding service backed by a pretrained sentence-transformers model.

    Loading is retried with exponential backoff and a per-attempt timeout.
    When every attempt fails, or a later embedding call fails, the service
    switches to the deterministic fallback vectorizer for the rest of its
    lifetime.
    """

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        model_loader: Callable[[str], Any] | None = None,
    ) -> None:
        """Initialize the embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            model_loader: Builds a model from its name; defaults to
                ``SentenceTransformer``.
        """
        self._settings = settings or get_settings().embedding
        self._model_loader = model_loader or SentenceTransformer
        self._model: Any | None = None
        self._initialized = False
        self._use_fallback = False
        self._dimensions: int | None = None
        self._lock = asyncio.Lock()

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        if self._use_fallback or self._model is None:
            return self._settings.fallback_dimensions
        if self._dimensions is None:
            self._dimensions = int(self._model.get_sentence_embedding_dimension())
        return self._dimensions

    def is_using_fallback(self) -> bool:
        return self._use_fallback

    def enable_fallback(self, reason: str) -> None:
        """Switch to the fallback vectorizer permanently."""
        if not self._use_fallback:
            logger.warning(
                f"Embedding service switched to fallback mode: {reason}",
                extra={"model": self.model_name},
            )
        self._use_fallback = True
        set_fallback_mode(self.model_name, True)

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized or self._use_fallback:
                return

            attempts = self._settings.max_retries
            for attempt in range(1, attempts + 1):
                try:
                    self._model = await with_timeout(
                        lambda: asyncio.to_thread(self._model_loader, self.model_name),
                        self._settings.load_timeout,
                        f"Model loading timed out after {self._settings.load_timeout}s",
                    )
                except Exception as e:
                    logger.error(
                        f"Failed to load embedding model (attempt {attempt}/{attempts}): {e}",
                        extra={"model": self.model_name},
                    )
                    if attempt < attempts:
                        delay = self._settings.retry_base_delay * 2**attempt
                        logger.info(f"Retrying model load in {delay:.1f}s")
                        await asyncio.sleep(delay)
                    continue

                self._initialized = True
                set_fallback_mode(self.model_name, False)
                logger.info(
                    f"Embedding model loaded: {self.model_name}",
                    extra={"attempt": attempt},
                )
                return

            self.enable_fallback(f"model unavailable after {attempts} attempts")

    def _encode(self, text: str) -> list[float]:
        if self._model is None:
            raise EmbeddingError(
                "Embedding model is not loaded",
                code=ErrorCode.EMBEDDING_MODEL_UNAVAILABLE,
            )
        # The model's pooling layer averages token vectors; normalize to unit length.
        vector = self._model.encode(text, normalize_embeddings=True, convert_to_numpy=True)
        return [float(value) for value in vector]

    def _fallback(self, text: str) -> list[float]:
        return fallback_embedding(text, self._settings.fallback_dimensions)

    async def generate_embedding(self, text: str) -> list[float]:
        start = time.perf_counter()

        if not self._use_fallback and not self._initialized:
            await self.initialize()

        if self._use_fallback:
            vector = self._fallback(text)
            track_embedding_request(self.model_name, time.perf_counter() - start, fallback=True)
            return vector

        try:
            vector = await with_timeout(
                lambda: asyncio.to_thread(self._encode, text),
                self._settings.call_timeout,
                f"Embedding timed out after {self._settings.call_timeout}s",
            )
        except Exception as e:
            self.enable_fallback(f"embedding failed: {e}")
            vector = self._fallback(text)
            track_embedding_request(self.model_name, time.perf_counter() - start, fallback=True)
            return vector

        track_embedding_request(self.model_name, time.perf_counter() - start)
        return vector


def create_embedding_service(
    settings: EmbeddingSettings | None = None,
) -> SentenceTransformerEmbeddingService:
    """Factory function to create the configured embedding service."""
    return SentenceTransformerEmbeddingService(settings=settings)
