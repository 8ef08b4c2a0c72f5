"""
Wire a transport, broker, and orchestrator into one search session.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from .broker import RequestBroker
from .config import WorkerSettings, resolve_settings
from .search import DEFAULT_CORPUS, SearchOrchestrator
from .search.orchestrator import Renderer, StateListener
from .worker import ProcessTransport, WorkerTransport

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_session(
    settings: WorkerSettings | None = None,
    corpus: Sequence[str] | None = None,
    *,
    transport: WorkerTransport | None = None,
    renderer: Renderer | None = None,
    on_state: StateListener | None = None,
    index: bool = True,
) -> AsyncIterator[SearchOrchestrator]:
    """
    Start a worker and yield an orchestrator for it.

    The worker runs in a child process unless ``transport`` is given. With
    ``index=True`` the corpus is indexed before the orchestrator is yielded.
    The worker is always shut down on exit.
    """
    resolved = settings or resolve_settings()
    texts = list(corpus) if corpus is not None else list(DEFAULT_CORPUS)
    broker = RequestBroker(transport or ProcessTransport(resolved))
    orchestrator = SearchOrchestrator(
        broker, texts, renderer=renderer, on_state=on_state
    )
    broker.start()
    try:
        if index:
            await orchestrator.index()
        yield orchestrator
    finally:
        orchestrator.close()
        await broker.close()
        logger.debug("Search session closed")
