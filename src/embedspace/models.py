"""
Core data types shared by the engine, worker, and search layers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeAlias

import numpy as np


Coordinate3D: TypeAlias = tuple[float, float, float]


@dataclass(frozen=True)
class Embedding:
    """
    One or more embedding vectors stored as a flat float32 buffer.

    ``dims`` is ``(N, D)``: a single text is ``(1, D)`` and a corpus of N
    texts is ``(N, D)``. Item ``i`` occupies ``data[i*D:(i+1)*D]``.
    """

    data: np.ndarray
    dims: tuple[int, ...]
    dtype: str = "float32"

    def __post_init__(self) -> None:
        if len(self.dims) not in (1, 2):
            raise ValueError(f"Embedding dims must be 1-D or 2-D, got {self.dims}")
        expected = int(np.prod(self.dims))
        if self.data.ndim != 1 or self.data.size != expected:
            raise ValueError(
                f"Embedding buffer of size {self.data.size} does not match dims {self.dims}"
            )

    @classmethod
    def from_matrix(cls, matrix: np.ndarray | Sequence[Sequence[float]]) -> Embedding:
        array = np.array(matrix, dtype=np.float32)
        if array.ndim == 1:
            array = array.reshape(1, -1)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D matrix, got shape {array.shape}")
        flat = array.reshape(-1)
        flat.setflags(write=False)
        return cls(data=flat, dims=(int(array.shape[0]), int(array.shape[1])))

    @property
    def count(self) -> int:
        return 1 if len(self.dims) == 1 else self.dims[0]

    @property
    def dimension(self) -> int:
        return self.dims[-1]

    def matrix(self) -> np.ndarray:
        """Return a read-only ``(N, D)`` view of the buffer."""
        return self.data.reshape(self.count, self.dimension)

    def vector(self, index: int) -> np.ndarray:
        if not 0 <= index < self.count:
            raise IndexError(f"Embedding index {index} out of range for {self.count} items")
        start = index * self.dimension
        return self.data[start : start + self.dimension]


@dataclass(frozen=True)
class SearchResult:
    """A corpus item scored against a query."""

    index: int
    score: float
    text: str


@dataclass(frozen=True)
class SearchOutcome:
    """Everything produced by a single query."""

    query: str
    embedding: Embedding
    query_3d: Coordinate3D
    results: list[SearchResult]

    @property
    def top(self) -> SearchResult | None:
        return self.results[0] if self.results else None


def to_coordinate(values: Sequence[float]) -> Coordinate3D:
    """Coerce a projected row into a 3-tuple, padding with zeros when k < 3."""
    padded = [float(v) for v in values][:3]
    while len(padded) < 3:
        padded.append(0.0)
    return (padded[0], padded[1], padded[2])


def vector_preview(vector: Sequence[float] | np.ndarray, head: int = 4) -> str:
    """Render the first few components of a vector, e.g. ``[0.1234, -0.0100, ...]``."""
    values = [float(v) for v in np.asarray(vector).reshape(-1)]
    shown = ", ".join(f"{v:.4f}" for v in values[:head])
    if len(values) > head:
        return f"[{shown}, ...]"
    return f"[{shown}]"
