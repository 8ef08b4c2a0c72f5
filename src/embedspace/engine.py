"""
Embedding engine backed by a sentence-transformers model.

The model is loaded once per engine instance. Concurrent first callers share
the same in-flight load, and a failed load stays failed for the lifetime of
the instance.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Callable, Protocol

import numpy as np

from .config import DEFAULT_BATCH_SIZE, DEFAULT_MODEL, WorkerSettings
from .errors import EngineLoadError
from .models import Embedding

logger = logging.getLogger(__name__)


class TextEncoder(Protocol):
    """Anything that turns a batch of texts into a ``(N, D)`` array."""

    def encode(self, texts: list[str]) -> Any:
        """Return one pooled vector per input text."""


ModelLoader = Callable[..., TextEncoder]


class SentenceTransformerEncoder:
    """Mean-pooled sentence-transformers model."""

    def __init__(
        self,
        model_name: str,
        *,
        device: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        from sentence_transformers import SentenceTransformer, models

        transformer = models.Transformer(model_name)
        pooling = models.Pooling(
            transformer.get_word_embedding_dimension(),
            pooling_mode="mean",
        )
        self.model = SentenceTransformer(modules=[transformer, pooling], device=device)
        self.batch_size = batch_size

    def encode(self, texts: list[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
        )


def load_sentence_transformer(model_name: str, device: str | None = None) -> TextEncoder:
    return SentenceTransformerEncoder(model_name, device=device)


def _l2_normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return matrix / norms


class EmbeddingEngine:
    """Embed text into unit-length vectors of a fixed dimensionality."""

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        *,
        device: str | None = None,
        loader: ModelLoader | None = None,
    ) -> None:
        self.model_name = model_name
        self.device = device
        self._loader = loader or load_sentence_transformer
        self._load_future: asyncio.Future[TextEncoder] | None = None
        self._dimension: int | None = None

    @classmethod
    def from_settings(
        cls, settings: WorkerSettings, *, loader: ModelLoader | None = None
    ) -> EmbeddingEngine:
        if loader is None:

            def loader(model_name: str, device: str | None) -> TextEncoder:
                return SentenceTransformerEncoder(
                    model_name, device=device, batch_size=settings.batch_size
                )

        return cls(settings.model_name, device=settings.device, loader=loader)

    @property
    def loaded(self) -> bool:
        future = self._load_future
        return (
            future is not None
            and future.done()
            and not future.cancelled()
            and future.exception() is None
        )

    @property
    def dimension(self) -> int | None:
        """Vector width, known after the first successful embed."""
        return self._dimension

    async def load(self) -> TextEncoder:
        """Load the model, or join the load already in flight."""
        if self._load_future is None:
            logger.info("Loading embedding model %s", self.model_name)
            self._load_future = asyncio.ensure_future(
                asyncio.to_thread(self._loader, self.model_name, self.device)
            )
            self._load_future.add_done_callback(self._log_load_result)
        try:
            return await asyncio.shield(self._load_future)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise EngineLoadError(
                f"Failed to load embedding model {self.model_name!r}: {exc}"
            ) from exc

    def _log_load_result(self, future: asyncio.Future[TextEncoder]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            logger.info("Embedding model %s ready", self.model_name)
        else:
            logger.error("Embedding model %s failed to load: %s", self.model_name, exc)

    async def embed(self, text: str | Sequence[str]) -> Embedding:
        """
        Embed a single text (``dims == (1, D)``) or a sequence of texts
        (``dims == (N, D)``, input order preserved).
        """
        texts = _validate_input(text)
        encoder = await self.load()
        raw = await asyncio.to_thread(encoder.encode, texts)
        matrix = np.asarray(raw, dtype=np.float32)
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2 or matrix.shape[0] != len(texts):
            raise ValueError(
                f"Encoder returned shape {matrix.shape} for {len(texts)} input texts"
            )

        width = int(matrix.shape[1])
        if self._dimension is None:
            self._dimension = width
        elif width != self._dimension:
            raise ValueError(
                f"Encoder returned {width}-dimensional vectors, expected {self._dimension}"
            )

        logger.debug("Embedded %d text(s) into %d dimensions", len(texts), width)
        return Embedding.from_matrix(_l2_normalize(matrix))


def _validate_input(text: str | Sequence[str]) -> list[str]:
    if isinstance(text, str):
        texts = [text]
    elif isinstance(text, Sequence):
        texts = list(text)
    else:
        raise ValueError(f"Expected text or a sequence of texts, got {type(text).__name__}")

    if not texts:
        raise ValueError("Input must contain at least one text.")
    for item in texts:
        if not isinstance(item, str):
            raise ValueError(f"Expected text, got {type(item).__name__}")
        if not item.strip():
            raise ValueError("Input texts must be non-empty.")
    return texts
