"""Dimensionality reduction for visualizing embeddings."""

from __future__ import annotations

from typing import Any

from .pca import PCA, ProjectionBasis


def create_reducer(algorithm: str = "pca", **options: Any) -> PCA:
    """Build a reducer by name; only ``pca`` is available."""
    if algorithm.lower() == "pca":
        return PCA(**options)
    raise ValueError(f"Unknown dimensionality reduction algorithm: {algorithm}")


__all__ = [
    "PCA",
    "ProjectionBasis",
    "create_reducer",
]
