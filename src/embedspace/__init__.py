"""
embedspace - semantic search over a corpus projected into 3-D.

A background worker process loads a sentence-transformers model once,
embeds text, fits a PCA basis on the corpus, and projects queries into that
fixed basis. The controller talks to it through an id-correlated request
broker, and the search orchestrator ranks the corpus by cosine similarity.

Example usage:
    >>> from embedspace import open_session
    >>> async with open_session() as orchestrator:
    ...     outcome = await orchestrator.search("a feline rested")
    ...     outcome.top.text
"""

from .broker import PendingRequest, RequestBroker
from .config import WorkerSettings, resolve_settings
from .engine import EmbeddingEngine
from .errors import (
    EmbedspaceError,
    EngineLoadError,
    ReducerNotInitializedError,
    RequestFailedError,
    SearchUnavailableError,
    StateError,
    WorkerCrashedError,
)
from .models import Coordinate3D, Embedding, SearchOutcome, SearchResult
from .readiness import Readiness, ReadinessSignal
from .reduction import PCA, ProjectionBasis, create_reducer
from .search import SearchOrchestrator, SearchState
from .session import open_session

__all__ = [
    # Engine
    "EmbeddingEngine",
    # Reduction
    "PCA",
    "ProjectionBasis",
    "create_reducer",
    # Broker
    "RequestBroker",
    "PendingRequest",
    "Readiness",
    "ReadinessSignal",
    # Search
    "SearchOrchestrator",
    "SearchState",
    "open_session",
    # Models
    "Coordinate3D",
    "Embedding",
    "SearchOutcome",
    "SearchResult",
    # Config
    "WorkerSettings",
    "resolve_settings",
    # Errors
    "EmbedspaceError",
    "EngineLoadError",
    "ReducerNotInitializedError",
    "RequestFailedError",
    "SearchUnavailableError",
    "StateError",
    "WorkerCrashedError",
]
