"""
Worker-side command handling.

``WorkerRuntime`` owns the embedding engine and the fitted reducer and turns
raw command dicts into response dicts. ``run_worker`` hosts it in a child
process behind a multiprocessing pipe.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from multiprocessing.connection import Connection
from typing import Any, Callable

from ..config import WorkerSettings
from ..engine import EmbeddingEngine
from ..errors import EngineLoadError, ReducerNotInitializedError
from ..logging_utils import configure_logging
from ..reduction import PCA, create_reducer
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
    TensorPayload,
    WireMessage,
    extract_id,
    parse_command,
)

logger = logging.getLogger(__name__)

Post = Callable[[dict[str, Any]], None]


class WorkerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    TERMINATED = "terminated"


class WorkerRuntime:
    """Executes embed / reduceCorpus / projectQuery commands."""

    def __init__(self, engine: EmbeddingEngine, *, n_components: int = 3) -> None:
        self.engine = engine
        self.n_components = n_components
        self.state = WorkerState.UNINITIALIZED
        self.load_error: str | None = None
        self._reducer: PCA | None = None

    @property
    def reducer(self) -> PCA | None:
        return self._reducer

    async def start(self, post: Post) -> None:
        """Load the engine and announce ``ready`` or a fatal ``error``."""
        if self.state is not WorkerState.UNINITIALIZED:
            return
        self.state = WorkerState.LOADING
        try:
            await self.engine.load()
        except EngineLoadError as exc:
            self.load_error = str(exc)
            if self.state is WorkerState.LOADING:
                self.state = WorkerState.ERROR
            post(ErrorResponse(error=str(exc)).to_wire())
            return
        if self.state is WorkerState.LOADING:
            self.state = WorkerState.READY
        post(ReadyResponse().to_wire())

    def terminate(self) -> None:
        self.state = WorkerState.TERMINATED

    async def handle(self, raw: Any) -> dict[str, Any]:
        """Answer one raw command. A failure only affects its own response."""
        request_id = extract_id(raw)
        if self.state is WorkerState.TERMINATED:
            return ErrorResponse(id=request_id, error="Worker has been terminated.").to_wire()
        try:
            command = parse_command(raw)
            response = await self._execute(command)
        except Exception as exc:
            logger.warning("Request %s failed: %s", request_id, exc)
            return ErrorResponse(id=request_id, error=str(exc) or type(exc).__name__).to_wire()
        return response.to_wire()

    async def _execute(self, command: Command) -> WireMessage:
        if isinstance(command, EmbedCommand):
            embedding = await self.engine.embed(command.text)
            return CompleteResponse(
                id=command.id, embedding=TensorPayload.from_embedding(embedding)
            )

        if isinstance(command, ReduceCorpusCommand):
            matrix = command.embedding.to_matrix()
            reducer = create_reducer("pca", n_components=self.n_components)
            points = await asyncio.to_thread(reducer.fit_transform, matrix)
            self._reducer = reducer
            logger.info("Reduced corpus of %d vectors to %d dimensions", len(points), self.n_components)
            return CorpusReducedResponse(id=command.id, corpus_3d=points.tolist())

        if isinstance(command, ProjectQueryCommand):
            reducer = self._reducer
            if reducer is None:
                raise ReducerNotInitializedError()
            points = reducer.transform(command.embedding.to_matrix())
            return QueryProjectedResponse(id=command.id, query_3d=points.tolist())

        raise TypeError(f"Unsupported command: {command!r}")


def run_worker(conn: Connection, settings: WorkerSettings) -> None:
    """Child process entry point."""
    configure_logging(settings.log_level)
    engine = EmbeddingEngine.from_settings(settings)
    runtime = WorkerRuntime(engine, n_components=settings.n_components)
    try:
        asyncio.run(serve(conn, runtime))
    finally:
        conn.close()


async def serve(conn: Connection, runtime: WorkerRuntime) -> None:
    """Read commands from ``conn`` until it closes or a ``None`` arrives."""
    tasks: set[asyncio.Task[None]] = set()

    def post(message: dict[str, Any]) -> None:
        try:
            conn.send(message)
        except (BrokenPipeError, OSError) as exc:
            logger.warning("Could not post %s to controller: %s", message.get("type"), exc)

    def spawn(coro: Any) -> None:
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    async def reply(raw: Any) -> None:
        post(await runtime.handle(raw))

    spawn(runtime.start(post))
    while True:
        try:
            raw = await asyncio.to_thread(conn.recv)
        except (EOFError, OSError):
            logger.info("Controller connection closed")
            break
        if raw is None:
            break
        spawn(reply(raw))

    runtime.terminate()
    for task in list(tasks):
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("Embedding worker stopped")
