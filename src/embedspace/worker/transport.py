"""
Transports that carry protocol messages between the broker and a worker.
"""

from __future__ import annotations

import asyncio
import logging
import multiprocessing
import threading
from multiprocessing.connection import Connection
from typing import Any, Callable, Coroutine, Protocol

from ..config import WorkerSettings
from ..errors import WorkerCrashedError
from .runtime import WorkerRuntime, run_worker

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], None]
FailureHandler = Callable[[BaseException], None]
WorkerTarget = Callable[[Connection, WorkerSettings], None]

_SHUTDOWN_TIMEOUT = 5.0


class WorkerTransport(Protocol):
    """Moves raw message dicts to and from a worker."""

    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        """Start the worker; callbacks run on the controller's event loop."""

    def send(self, message: dict[str, Any]) -> None:
        """Deliver one command; raise WorkerCrashedError if it cannot."""

    async def close(self) -> None:
        """Stop the worker without reporting a failure."""


class ProcessTransport:
    """
    Hosts the worker in a child process connected by a duplex pipe.

    A daemon reader thread blocks on the pipe and hands every message to the
    event loop with ``call_soon_threadsafe``. If the pipe closes while the
    transport is not shutting down, the worker died and ``on_failure`` gets
    a ``WorkerCrashedError`` carrying the exit code.
    """

    def __init__(
        self,
        settings: WorkerSettings,
        *,
        target: WorkerTarget = run_worker,
        start_method: str | None = None,
    ) -> None:
        self.settings = settings
        self._target = target
        self._start_method = start_method or settings.start_method
        self._process: multiprocessing.process.BaseProcess | None = None
        self._conn: Connection | None = None
        self._reader: threading.Thread | None = None
        self._closing = False
        self._send_lock = threading.Lock()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        if self._process is not None:
            raise RuntimeError("Worker process already started.")
        loop = asyncio.get_running_loop()
        context = multiprocessing.get_context(self._start_method)
        parent_conn, child_conn = context.Pipe(duplex=True)
        self._process = context.Process(
            target=self._target,
            args=(child_conn, self.settings),
            name="embedspace-worker",
            daemon=True,
        )
        self._process.start()
        child_conn.close()
        self._conn = parent_conn
        logger.info(
            "Started embedding worker pid=%s (%s)", self._process.pid, self._start_method
        )

        self._reader = threading.Thread(
            target=self._read_loop,
            args=(loop, on_message, on_failure),
            name="embedspace-worker-reader",
            daemon=True,
        )
        self._reader.start()

    def _read_loop(
        self,
        loop: asyncio.AbstractEventLoop,
        on_message: MessageHandler,
        on_failure: FailureHandler,
    ) -> None:
        assert self._conn is not None and self._process is not None
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                if self._closing:
                    return
                self._process.join(timeout=_SHUTDOWN_TIMEOUT)
                error = WorkerCrashedError(
                    "Embedding worker exited unexpectedly "
                    f"(exit code {self._process.exitcode})."
                )
                self._dispatch(loop, on_failure, error)
                return
            self._dispatch(loop, on_message, message)

    @staticmethod
    def _dispatch(
        loop: asyncio.AbstractEventLoop, callback: Callable[[Any], None], payload: Any
    ) -> None:
        try:
            loop.call_soon_threadsafe(callback, payload)
        except RuntimeError:
            logger.debug("Event loop closed; dropping worker message")

    def send(self, message: dict[str, Any]) -> None:
        if self._conn is None or self._closing:
            raise WorkerCrashedError("Embedding worker is not running.")
        try:
            with self._send_lock:
                self._conn.send(message)
        except (BrokenPipeError, OSError) as exc:
            raise WorkerCrashedError(f"Embedding worker is unreachable: {exc}") from exc

    async def close(self) -> None:
        if self._process is None or self._closing:
            return
        self._closing = True
        process = self._process
        if self._conn is not None:
            try:
                with self._send_lock:
                    self._conn.send(None)
            except (BrokenPipeError, OSError):
                pass
        await asyncio.to_thread(process.join, _SHUTDOWN_TIMEOUT)
        if process.is_alive():
            logger.warning("Embedding worker did not stop in time; terminating")
            process.terminate()
            await asyncio.to_thread(process.join, _SHUTDOWN_TIMEOUT)
        if self._reader is not None:
            await asyncio.to_thread(self._reader.join, _SHUTDOWN_TIMEOUT)
        if self._conn is not None:
            self._conn.close()
        logger.info("Embedding worker exited with code %s", process.exitcode)


class InlineTransport:
    """Runs a ``WorkerRuntime`` on the controller's own event loop."""

    def __init__(self, runtime: WorkerRuntime) -> None:
        self.runtime = runtime
        self._on_message: MessageHandler | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        self._on_message = on_message
        self._spawn(self.runtime.start(self._deliver))

    def _deliver(self, message: dict[str, Any]) -> None:
        if self._closed or self._on_message is None:
            return
        asyncio.get_running_loop().call_soon(self._on_message, message)

    def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise WorkerCrashedError("Inline worker is closed.")
        self._spawn(self._reply(message))

    async def _reply(self, message: dict[str, Any]) -> None:
        self._deliver(await self.runtime.handle(message))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.runtime.terminate()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
