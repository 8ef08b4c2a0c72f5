"""Corpus indexing, query projection, and similarity ranking."""

from .corpus import DEFAULT_CORPUS, load_corpus
from .orchestrator import Renderer, SearchOrchestrator, SearchState
from .ranking import cosine_scores, cosine_similarity, rank_corpus

__all__ = [
    "DEFAULT_CORPUS",
    "load_corpus",
    "Renderer",
    "SearchOrchestrator",
    "SearchState",
    "cosine_scores",
    "cosine_similarity",
    "rank_corpus",
]
