"""Tests for the worker message protocol."""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from embedspace.models import Embedding
from embedspace.worker.protocol import (
    CorpusReducedResponse,
    EmbedCommand,
    ErrorResponse,
    ProjectQueryCommand,
    QueryProjectedResponse,
    ReadyResponse,
    ReduceCorpusCommand,
    TensorPayload,
    extract_id,
    parse_command,
    parse_response,
)


def test_commands_are_selected_by_type() -> None:
    tensor = {"data": [0.0, 1.0], "dims": [1, 2], "type": "float32"}

    assert isinstance(parse_command({"type": "embed", "id": 1, "text": "hi"}), EmbedCommand)
    assert isinstance(
        parse_command({"type": "reduceCorpus", "id": 2, "embedding": tensor}),
        ReduceCorpusCommand,
    )
    assert isinstance(
        parse_command({"type": "projectQuery", "id": 3, "embedding": tensor}),
        ProjectQueryCommand,
    )


def test_embed_command_accepts_a_batch() -> None:
    command = parse_command({"type": "embed", "id": 4, "text": ["a", "b"]})

    assert command.text == ["a", "b"]


def test_unknown_command_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_command({"type": "explode", "id": 1})


def test_reduced_responses_use_camel_case_on_the_wire() -> None:
    corpus = CorpusReducedResponse(id=5, corpus_3d=[[1.0, 2.0, 3.0]])
    query = QueryProjectedResponse(id=6, query_3d=[[0.5, 0.5, 0.5]])

    assert corpus.to_wire() == {"type": "corpusReduced", "id": 5, "corpus3D": [[1.0, 2.0, 3.0]]}
    assert query.to_wire() == {"type": "queryProjected", "id": 6, "query3D": [[0.5, 0.5, 0.5]]}

    parsed = parse_response({"type": "queryProjected", "id": 6, "query3D": [[0.5, 0.5, 0.5]]})
    assert parsed.query_3d == [[0.5, 0.5, 0.5]]


def test_fatal_error_has_no_id_on_the_wire() -> None:
    assert ErrorResponse(error="boom").to_wire() == {"type": "error", "error": "boom"}
    assert parse_response({"type": "error", "error": "boom"}).id is None
    assert parse_response({"type": "error", "id": 9, "error": "bad"}).id == 9


def test_ready_response_round_trip() -> None:
    assert isinstance(parse_response(ReadyResponse().to_wire()), ReadyResponse)


def test_tensor_payload_preserves_layout() -> None:
    embedding = Embedding.from_matrix([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    payload = TensorPayload.from_embedding(embedding)

    assert payload.dims == [2, 3]
    assert payload.data == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    np.testing.assert_array_equal(payload.to_matrix(), [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    assert not payload.to_embedding().data.flags.writeable


def test_tensor_payload_with_mismatched_dims_fails() -> None:
    with pytest.raises(ValueError):
        TensorPayload(data=[1.0, 2.0, 3.0], dims=[2, 2]).to_embedding()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ({"id": 7}, 7),
        ({"id": "7"}, None),
        ({"id": True}, None),
        ({}, None),
        ("not a dict", None),
    ],
)
def test_extract_id(raw, expected) -> None:
    assert extract_id(raw) == expected
