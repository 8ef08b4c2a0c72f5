"""
Controller-side request broker for the embedding worker.

Every request gets a fresh id and a pending record before it is sent.
Responses are matched purely by id, so they may arrive in any order.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from .errors import RequestFailedError, WorkerCrashedError
from .models import Embedding
from .readiness import ReadinessSignal
from .worker.protocol import (
    Command,
    CommandType,
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
    extract_id,
    parse_response,
)
from .worker.transport import WorkerTransport

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """An in-flight request awaiting its correlated response."""

    id: int
    command: CommandType
    future: asyncio.Future[Response]


class RequestBroker:
    """Correlates worker requests with responses and tracks readiness."""

    def __init__(
        self,
        transport: WorkerTransport,
        *,
        readiness: ReadinessSignal | None = None,
    ) -> None:
        self.transport = transport
        self.readiness = readiness or ReadinessSignal()
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._failure: WorkerCrashedError | None = None
        self._started = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def failed(self) -> bool:
        return self._failure is not None

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.transport.start(self._on_message, self._on_failure)

    async def close(self) -> None:
        await self.transport.close()
        self._reject_all(WorkerCrashedError("Embedding worker was shut down."))
        if self._failure is None:
            self._failure = WorkerCrashedError("Embedding worker was shut down.")

    async def embed(self, text: str | Sequence[str]) -> Embedding:
        payload: str | list[str] = text if isinstance(text, str) else list(text)
        response = await self._request(lambda rid: EmbedCommand(id=rid, text=payload))
        return _expect(response, CompleteResponse).embedding.to_embedding()

    async def reduce_corpus(self, embedding: Embedding) -> list[list[float]]:
        tensor = TensorPayload.from_embedding(embedding)
        response = await self._request(
            lambda rid: ReduceCorpusCommand(id=rid, embedding=tensor)
        )
        return _expect(response, CorpusReducedResponse).corpus_3d

    async def project_query(self, embedding: Embedding) -> list[list[float]]:
        tensor = TensorPayload.from_embedding(embedding)
        response = await self._request(
            lambda rid: ProjectQueryCommand(id=rid, embedding=tensor)
        )
        return _expect(response, QueryProjectedResponse).query_3d

    async def _request(self, build: Callable[[int], Command]) -> Response:
        if self._failure is not None:
            raise WorkerCrashedError(str(self._failure))
        if not self._started:
            raise WorkerCrashedError("Embedding worker has not been started.")

        request_id = next(self._ids)
        command = build(request_id)
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(
            id=request_id, command=command.type, future=future
        )
        try:
            self.transport.send(command.to_wire())
        except WorkerCrashedError:
            self._pending.pop(request_id, None)
            raise
        logger.debug("Sent %s request %d", command.type, request_id)
        return await future

    def _on_message(self, raw: Any) -> None:
        try:
            response = parse_response(raw)
        except ValidationError as exc:
            request_id = extract_id(raw)
            logger.warning("Malformed worker message for request %s: %s", request_id, exc)
            record = self._pending.pop(request_id, None) if request_id is not None else None
            if record is not None and not record.future.done():
                record.future.set_exception(
                    RequestFailedError(
                        "Worker sent a malformed response.", request_id=request_id
                    )
                )
            return

        if isinstance(response, ReadyResponse):
            logger.info("Embedding worker is ready")
            self.readiness.set_ready()
            return

        if isinstance(response, ErrorResponse) and response.id is None:
            logger.error("Embedding worker reported a fatal error: %s", response.error)
            self.readiness.set_error(response.error)
            return

        record = self._pending.pop(response.id, None)
        if record is None:
            logger.debug("Discarding response for unknown request %s", response.id)
            return
        if record.future.done():
            return

        if isinstance(response, ErrorResponse):
            record.future.set_exception(
                RequestFailedError(response.error, request_id=response.id)
            )
        else:
            record.future.set_result(response)
        logger.debug("Settled %s request %d", record.command, record.id)

    def _on_failure(self, exc: BaseException) -> None:
        if self._failure is not None:
            return
        if isinstance(exc, WorkerCrashedError):
            self._failure = exc
        else:
            self._failure = WorkerCrashedError(f"Embedding worker failed: {exc}")
        logger.error("%s Rejecting %d pending request(s)", self._failure, len(self._pending))
        self._reject_all(self._failure)
        self.readiness.set_error(str(self._failure))

    def _reject_all(self, exc: WorkerCrashedError) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for record in pending:
            if not record.future.done():
                record.future.set_exception(WorkerCrashedError(str(exc)))


def _expect(response: Response, kind: type[Any]) -> Any:
    if not isinstance(response, kind):
        raise RequestFailedError(
            f"Expected a {kind.__name__} but received {response.type!r}.",
            request_id=getattr(response, "id", None),
        )
    return response
