"""Embedding worker: message protocol, command runtime, and transports."""

from .protocol import (
    Command,
    CompleteResponse,
    CorpusReducedResponse,
    EmbedCommand,
    ErrorResponse,
    ProjectQueryCommand,
    QueryProjectedResponse,
    ReadyResponse,
    ReduceCorpusCommand,
    Response,
    TensorPayload,
    parse_command,
    parse_response,
)
from .runtime import WorkerRuntime, WorkerState, run_worker, serve
from .transport import InlineTransport, ProcessTransport, WorkerTransport

__all__ = [
    # Protocol
    "Command",
    "Response",
    "EmbedCommand",
    "ReduceCorpusCommand",
    "ProjectQueryCommand",
    "ReadyResponse",
    "CompleteResponse",
    "CorpusReducedResponse",
    "QueryProjectedResponse",
    "ErrorResponse",
    "TensorPayload",
    "parse_command",
    "parse_response",
    # Runtime
    "WorkerRuntime",
    "WorkerState",
    "run_worker",
    "serve",
    # Transports
    "WorkerTransport",
    "ProcessTransport",
    "InlineTransport",
]
