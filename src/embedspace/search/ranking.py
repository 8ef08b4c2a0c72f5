"""
Similarity ranking of corpus embeddings against a query vector.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ..models import Embedding, SearchResult


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine of the angle between two vectors; 0.0 if either is all zeros."""
    left = np.asarray(a, dtype=np.float64).reshape(-1)
    right = np.asarray(b, dtype=np.float64).reshape(-1)
    if left.shape != right.shape:
        raise ValueError(f"Vector widths differ: {left.shape[0]} vs {right.shape[0]}")
    denominator = float(np.linalg.norm(left) * np.linalg.norm(right))
    if denominator == 0.0:
        return 0.0
    return float(left @ right / denominator)


def cosine_scores(query: Sequence[float] | np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``matrix``."""
    vector = np.asarray(query, dtype=np.float64).reshape(-1)
    rows = np.asarray(matrix, dtype=np.float64)
    if rows.ndim != 2 or rows.shape[1] != vector.shape[0]:
        raise ValueError(
            f"Cannot score a {vector.shape[0]}-dimensional query against shape {rows.shape}"
        )
    norms = np.linalg.norm(rows, axis=1) * np.linalg.norm(vector)
    dots = rows @ vector
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0.0)


def rank_corpus(
    query: Sequence[float] | np.ndarray,
    corpus: Embedding,
    texts: Sequence[str],
    *,
    limit: int | None = None,
) -> list[SearchResult]:
    """Score every corpus item and sort by score, ties by corpus index."""
    if corpus.count != len(texts):
        raise ValueError(
            f"Corpus embedding has {corpus.count} rows but {len(texts)} texts were given"
        )
    scores = cosine_scores(query, corpus.matrix())
    ordered = sorted(range(len(texts)), key=lambda i: (-scores[i], i))
    results = [
        SearchResult(index=i, score=float(scores[i]), text=texts[i]) for i in ordered
    ]
    if limit is not None:
        return results[: max(limit, 1)]
    return results
