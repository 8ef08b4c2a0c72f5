"""
Message protocol between the controller and the embedding worker.

Messages travel as plain dicts using the camelCase field names below, so any
transport that can carry JSON-like data (a multiprocessing pipe, a queue,
a websocket) can host the worker.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, TypeAlias, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..models import Embedding

CommandType: TypeAlias = Literal["embed", "reduceCorpus", "projectQuery"]


class WireMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TensorPayload(BaseModel):
    """Flat tensor data as exchanged over the worker boundary."""

    data: list[float] = Field(description="Row-major tensor values")
    dims: list[int] = Field(description="Tensor shape, e.g. [N, D]")
    type: str = Field(default="float32", description="Element type name")

    @classmethod
    def from_embedding(cls, embedding: Embedding) -> TensorPayload:
        return cls(
            data=embedding.data.tolist(),
            dims=list(embedding.dims),
            type=embedding.dtype,
        )

    def to_embedding(self) -> Embedding:
        data = np.asarray(self.data, dtype=np.float32)
        data.setflags(write=False)
        return Embedding(data=data, dims=tuple(self.dims), dtype=self.type)

    def to_matrix(self) -> np.ndarray:
        return self.to_embedding().matrix()


class EmbedCommand(WireMessage):
    """Embed one text or a batch of texts."""

    type: Literal["embed"] = "embed"
    id: int
    text: str | list[str] = Field(description="Text or texts to embed")


class ReduceCorpusCommand(WireMessage):
    """Fit the projection on a corpus embedding and return its 3-D points."""

    type: Literal["reduceCorpus"] = "reduceCorpus"
    id: int
    embedding: TensorPayload


class ProjectQueryCommand(WireMessage):
    """Project an embedding into the already fitted space."""

    type: Literal["projectQuery"] = "projectQuery"
    id: int
    embedding: TensorPayload


class ReadyResponse(WireMessage):
    type: Literal["ready"] = "ready"


class CompleteResponse(WireMessage):
    type: Literal["complete"] = "complete"
    id: int
    embedding: TensorPayload


class CorpusReducedResponse(WireMessage):
    type: Literal["corpusReduced"] = "corpusReduced"
    id: int
    corpus_3d: list[list[float]] = Field(alias="corpus3D")


class QueryProjectedResponse(WireMessage):
    type: Literal["queryProjected"] = "queryProjected"
    id: int
    query_3d: list[list[float]] = Field(alias="query3D")


class ErrorResponse(WireMessage):
    """Per-request failure, or a fatal worker error when ``id`` is absent."""

    type: Literal["error"] = "error"
    id: int | None = None
    error: str


Command = Annotated[
    Union[EmbedCommand, ReduceCorpusCommand, ProjectQueryCommand],
    Field(discriminator="type"),
]
Response = Annotated[
    Union[
        ReadyResponse,
        CompleteResponse,
        CorpusReducedResponse,
        QueryProjectedResponse,
        ErrorResponse,
    ],
    Field(discriminator="type"),
]

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)
_RESPONSE_ADAPTER: TypeAdapter[Response] = TypeAdapter(Response)


def parse_command(raw: Any) -> Command:
    """Validate a raw message dict into a typed command."""
    return _COMMAND_ADAPTER.validate_python(raw)


def parse_response(raw: Any) -> Response:
    """Validate a raw message dict into a typed response."""
    return _RESPONSE_ADAPTER.validate_python(raw)


def extract_id(raw: Any) -> int | None:
    """Best-effort request id lookup for messages that failed validation."""
    if isinstance(raw, dict):
        value = raw.get("id")
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None
