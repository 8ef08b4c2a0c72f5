"""
Search orchestration: index the corpus once, then answer queries.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import Callable, Protocol

from ..broker import RequestBroker
from ..errors import (
    EngineLoadError,
    SearchUnavailableError,
    StateError,
    WorkerCrashedError,
)
from ..models import Coordinate3D, Embedding, SearchOutcome, to_coordinate
from ..readiness import Readiness
from ..timing import PerformanceTracker
from .ranking import rank_corpus

logger = logging.getLogger(__name__)


class SearchState(str, Enum):
    LOADING = "loading"
    INDEXING = "indexing"
    READY = "ready"
    SEARCHING = "searching"
    ERROR = "error"


class Renderer(Protocol):
    """Receives the spatial layout to draw."""

    def plot_corpus(self, corpus_3d: list[Coordinate3D], texts: list[str]) -> None:
        """Draw every corpus item once, at indexing time."""

    def plot_query(self, point: Coordinate3D, text: str) -> None:
        """Draw the current query point, replacing the previous one."""

    def highlight(self, index: int | None) -> None:
        """Emphasize the best match, or clear the emphasis."""


StateListener = Callable[[str], None]


class SearchOrchestrator:
    """
    Drives ``loading -> indexing -> ready -> searching -> ready``.

    Worker crashes and model load failures move the orchestrator to
    ``error`` for good; a single failed request only fails that search.
    """

    def __init__(
        self,
        broker: RequestBroker,
        corpus: Sequence[str],
        *,
        renderer: Renderer | None = None,
        on_state: StateListener | None = None,
        tracker: PerformanceTracker | None = None,
    ) -> None:
        if not corpus:
            raise ValueError("Corpus must contain at least one text.")
        self.broker = broker
        self.corpus: tuple[str, ...] = tuple(corpus)
        self.renderer = renderer
        self.tracker = tracker or PerformanceTracker()
        self.state = SearchState.LOADING
        self.error: str | None = None
        self.corpus_embedding: Embedding | None = None
        self.corpus_3d: list[Coordinate3D] = []
        self.last_query_3d: Coordinate3D | None = None
        self._on_state = on_state
        self._in_flight = 0
        self._index_lock = asyncio.Lock()
        self._unsubscribe = broker.readiness.subscribe(self._on_readiness)

    @property
    def indexed(self) -> bool:
        return self.corpus_embedding is not None

    def close(self) -> None:
        self._unsubscribe()

    def _on_readiness(self, state: Readiness, error: str | None) -> None:
        if state is Readiness.ERROR:
            self._fail(error or "Embedding worker failed.")

    def _set_state(self, state: SearchState) -> None:
        if self.state is SearchState.ERROR and state is not SearchState.ERROR:
            return
        if state is self.state:
            return
        self.state = state
        logger.debug("Search state -> %s", state.value)
        if self._on_state is not None:
            self._on_state(state.value)

    def _fail(self, message: str) -> None:
        if self.state is SearchState.ERROR:
            return
        self.error = message
        logger.error("Search session failed: %s", message)
        self._set_state(SearchState.ERROR)

    async def index(self) -> list[Coordinate3D]:
        """Embed and project the corpus. Runs once; later calls reuse the result."""
        async with self._index_lock:
            if self.corpus_embedding is not None:
                return self.corpus_3d
            if self.state is SearchState.ERROR:
                raise SearchUnavailableError(self.error or "Search session failed.")

            if self._on_state is not None and self.state is SearchState.LOADING:
                self._on_state(SearchState.LOADING.value)
            readiness = await self.broker.readiness.wait()
            if readiness is Readiness.ERROR:
                message = self.broker.readiness.error or "Embedding model failed to load."
                self._fail(message)
                raise EngineLoadError(message)

            self._set_state(SearchState.INDEXING)
            try:
                await self.tracker.measure_async("index corpus", self._index_corpus)
            except Exception as exc:
                self._fail(str(exc) or type(exc).__name__)
                raise
            self._set_state(SearchState.READY)
            return self.corpus_3d

    async def _index_corpus(self) -> None:
        texts = list(self.corpus)
        embedding = await self.broker.embed(texts)
        if embedding.count != len(texts):
            raise ValueError(
                f"Expected {len(texts)} corpus embeddings, received {embedding.count}"
            )
        points = await self.broker.reduce_corpus(embedding)
        self.corpus_embedding = embedding
        self.corpus_3d = [to_coordinate(point) for point in points]
        logger.info(
            "Indexed %d corpus items (%d dimensions)", embedding.count, embedding.dimension
        )
        if self.renderer is not None:
            self.renderer.plot_corpus(self.corpus_3d, texts)

    async def search(self, query: str) -> SearchOutcome:
        """Embed, project, and rank the whole corpus against ``query``."""
        text = query.strip() if isinstance(query, str) else ""
        if not text:
            raise ValueError("Query must be a non-empty string.")
        if self.state is SearchState.ERROR:
            raise SearchUnavailableError(self.error or "Search session failed.")
        if self.corpus_embedding is None:
            raise StateError("Corpus has not been indexed yet.")

        self._in_flight += 1
        self._set_state(SearchState.SEARCHING)
        try:
            return await self.tracker.measure_async(
                "search", lambda: self._run_search(text)
            )
        except (EngineLoadError, WorkerCrashedError) as exc:
            self._fail(str(exc))
            raise
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and self.state is SearchState.SEARCHING:
                self._set_state(SearchState.READY)

    async def _run_search(self, text: str) -> SearchOutcome:
        assert self.corpus_embedding is not None
        embedding = await self.broker.embed(text)
        projected = await self.broker.project_query(embedding)
        point = to_coordinate(projected[0])
        self.last_query_3d = point
        if self.renderer is not None:
            self.renderer.plot_query(point, text)

        results = rank_corpus(embedding.vector(0), self.corpus_embedding, self.corpus)
        if self.renderer is not None:
            self.renderer.highlight(results[0].index if results else None)
        return SearchOutcome(query=text, embedding=embedding, query_3d=point, results=results)
