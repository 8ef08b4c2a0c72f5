"""Tests for similarity ranking and corpus loading."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from embedspace.models import Embedding
from embedspace.search import (
    DEFAULT_CORPUS,
    cosine_scores,
    cosine_similarity,
    load_corpus,
    rank_corpus,
)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def test_cosine_similarity_basics() -> None:
    assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_similarity_with_zero_vector_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0


def test_cosine_similarity_rejects_width_mismatch() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


def test_cosine_scores_handles_zero_rows() -> None:
    scores = cosine_scores([1.0, 0.0], np.array([[2.0, 0.0], [0.0, 0.0], [0.0, 1.0]]))

    np.testing.assert_allclose(scores, [1.0, 0.0, 0.0])


def test_rank_corpus_orders_by_score_then_index() -> None:
    corpus = Embedding.from_matrix([[0.0, 1.0], [1.0, 0.0], [1.0, 0.0], [0.6, 0.8]])
    texts = ["up", "right", "also right", "diagonal"]

    results = rank_corpus([1.0, 0.0], corpus, texts)

    assert [hit.index for hit in results] == [1, 2, 3, 0]
    assert results[0].text == "right"
    assert results[0].score == pytest.approx(1.0)
    assert results[2].score == pytest.approx(0.6)


def test_rank_corpus_limit() -> None:
    corpus = Embedding.from_matrix([[1.0, 0.0], [0.0, 1.0]])

    assert len(rank_corpus([1.0, 0.0], corpus, ["a", "b"], limit=1)) == 1


def test_rank_corpus_rejects_text_count_mismatch() -> None:
    corpus = Embedding.from_matrix([[1.0, 0.0], [0.0, 1.0]])

    with pytest.raises(ValueError):
        rank_corpus([1.0, 0.0], corpus, ["only one"])


# ---------------------------------------------------------------------------
# Corpus loading
# ---------------------------------------------------------------------------


def test_default_corpus() -> None:
    corpus = load_corpus()

    assert corpus == list(DEFAULT_CORPUS)
    assert len(corpus) == 10
    assert corpus[0] == "The cat sat on the mat."


def test_load_corpus_from_lines(tmp_path: Path) -> None:
    path = tmp_path / "corpus.txt"
    path.write_text("first line\n\n  second line  \n")

    assert load_corpus(str(path)) == ["first line", "second line"]


def test_load_corpus_from_json(tmp_path: Path) -> None:
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps(["alpha", " ", "beta"]))

    assert load_corpus(str(path)) == ["alpha", "beta"]


def test_load_corpus_rejects_non_string_json(tmp_path: Path) -> None:
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps({"texts": ["alpha"]}))

    with pytest.raises(ValueError, match="JSON list of strings"):
        load_corpus(str(path))


def test_load_corpus_rejects_missing_and_empty_files(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="No such corpus file"):
        load_corpus(str(tmp_path / "missing.txt"))

    empty = tmp_path / "empty.txt"
    empty.write_text("\n \n")
    with pytest.raises(ValueError, match="no entries"):
        load_corpus(str(empty))
