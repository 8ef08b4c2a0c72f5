"""
Principal component analysis for projecting embeddings into a small space.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..errors import ReducerNotInitializedError

logger = logging.getLogger(__name__)

DEFAULT_TIE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class ProjectionBasis:
    """Fitted PCA state: feature means plus the selected directions."""

    mean: np.ndarray
    components: np.ndarray
    explained_variance: np.ndarray

    @property
    def n_components(self) -> int:
        return int(self.components.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.mean.shape[0])


class PCA:
    """
    Covariance-eigendecomposition PCA.

    ``fit`` keeps the ``n_components`` eigenvectors with the largest
    eigenvalues. Eigenvalues equal within ``tie_tolerance`` (scaled by the
    largest eigenvalue) keep the smaller eigen-index first, and each
    direction is sign-flipped so its largest-magnitude entry is positive,
    making repeated fits on the same matrix produce the same basis.
    """

    def __init__(
        self,
        n_components: int = 3,
        *,
        tie_tolerance: float = DEFAULT_TIE_TOLERANCE,
    ) -> None:
        if n_components < 1:
            raise ValueError(f"n_components must be positive, got {n_components}")
        self.n_components = n_components
        self.tie_tolerance = tie_tolerance
        self.basis: ProjectionBasis | None = None

    @property
    def fitted(self) -> bool:
        return self.basis is not None

    def fit(self, X: np.ndarray | Sequence[Sequence[float]]) -> ProjectionBasis:
        matrix = _as_matrix(X)
        n_samples, n_features = matrix.shape
        if n_samples == 0 or n_features == 0:
            raise ValueError("Cannot fit a projection on an empty matrix.")

        mean = matrix.mean(axis=0)
        centered = matrix - mean
        covariance = centered.T @ centered / max(n_samples - 1, 1)

        eigenvalues, eigenvectors = np.linalg.eigh(covariance)
        order = _rank_eigenvalues(eigenvalues, self.tie_tolerance)

        components = np.zeros((self.n_components, n_features), dtype=np.float64)
        variances = np.zeros(self.n_components, dtype=np.float64)
        for slot, eigen_index in enumerate(order[: self.n_components]):
            components[slot] = _fix_sign(eigenvectors[:, eigen_index])
            variances[slot] = max(float(eigenvalues[eigen_index]), 0.0)

        for array in (mean, components, variances):
            array.setflags(write=False)
        self.basis = ProjectionBasis(
            mean=mean, components=components, explained_variance=variances
        )
        logger.info(
            "Fitted PCA on %d x %d matrix; top eigenvalues %s",
            n_samples,
            n_features,
            np.round(variances, 6).tolist(),
        )
        return self.basis

    def transform(self, X: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
        """Project rows of ``X`` onto the fitted directions, in direction order."""
        if self.basis is None:
            raise ReducerNotInitializedError()
        matrix = _as_matrix(X)
        if matrix.shape[1] != self.basis.n_features:
            raise ValueError(
                f"Expected {self.basis.n_features}-dimensional vectors, "
                f"got {matrix.shape[1]}"
            )
        return (matrix - self.basis.mean) @ self.basis.components.T

    def fit_transform(self, X: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
        self.fit(X)
        return self.transform(X)


def _as_matrix(X: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
    matrix = np.asarray(X, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got shape {matrix.shape}")
    return matrix


def _rank_eigenvalues(eigenvalues: np.ndarray, tolerance: float) -> list[int]:
    ranked = sorted(range(len(eigenvalues)), key=lambda i: -eigenvalues[i])
    scale = tolerance * max(1.0, float(np.max(np.abs(eigenvalues))))

    order: list[int] = []
    start = 0
    while start < len(ranked):
        anchor = eigenvalues[ranked[start]]
        end = start + 1
        while end < len(ranked) and abs(anchor - eigenvalues[ranked[end]]) <= scale:
            end += 1
        order.extend(sorted(ranked[start:end]))
        start = end
    return order


def _fix_sign(vector: np.ndarray) -> np.ndarray:
    pivot = int(np.argmax(np.abs(vector)))
    if vector[pivot] < 0:
        return -vector
    return vector
