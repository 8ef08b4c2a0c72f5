"""
Exception types raised across the embedding pipeline.
"""

from __future__ import annotations


class EmbedspaceError(Exception):
    """Base class for all embedspace errors."""


class EngineLoadError(EmbedspaceError):
    """Raised when the embedding model failed to load. Fatal for the session."""


class StateError(EmbedspaceError):
    """Raised when an operation is invoked out of order."""


class ReducerNotInitializedError(StateError):
    """Raised when projecting before a basis has been fitted."""

    def __init__(
        self,
        message: str = "Reducer has not been initialized. Call 'reduceCorpus' first.",
    ) -> None:
        super().__init__(message)


class RequestFailedError(EmbedspaceError):
    """Raised when the worker answered a single request with an error."""

    def __init__(self, message: str, *, request_id: int | None = None) -> None:
        super().__init__(message)
        self.request_id = request_id


class WorkerCrashedError(EmbedspaceError):
    """Raised when the worker process is gone and cannot answer."""


class SearchUnavailableError(EmbedspaceError):
    """Raised when searching after the session entered its error state."""
