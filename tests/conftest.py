import hashlib
import re
import time
from typing import Any, Callable

import numpy as np
import pytest

from embedspace.engine import EmbeddingEngine
from embedspace.errors import WorkerCrashedError
from embedspace.worker import InlineTransport, WorkerRuntime

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_SYNONYMS = {"feline": "cat", "kitten": "cat", "rested": "sat", "puppy": "dog"}


class FakeEncoder:
    """Mean-pools deterministic per-token vectors; synonyms share a vector."""

    def __init__(self, dim: int = 16) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []

    def _token_vector(self, token: str) -> np.ndarray:
        seed = int.from_bytes(hashlib.sha256(token.encode()).digest()[:4], "little")
        return np.random.default_rng(seed).standard_normal(self.dim)

    def encode(self, texts: list[str]) -> np.ndarray:
        self.calls.append(list(texts))
        rows = []
        for text in texts:
            tokens = [_SYNONYMS.get(t, t) for t in _TOKEN_RE.findall(text.lower())]
            rows.append(np.mean([self._token_vector(t) for t in tokens or ["<empty>"]], axis=0))
        return np.asarray(rows, dtype=np.float32)


class FakeLoader:
    """Model loader stand-in that counts how often it is invoked."""

    def __init__(
        self,
        dim: int = 16,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.dim = dim
        self.error = error
        self.delay = delay
        self.calls = 0
        self.encoder: FakeEncoder | None = None

    def __call__(self, model_name: str, device: str | None = None) -> FakeEncoder:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.encoder = FakeEncoder(self.dim)
        return self.encoder


class ScriptedTransport:
    """Transport whose replies and crashes are driven by the test."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.on_message: Callable[[Any], None] | None = None
        self.on_failure: Callable[[BaseException], None] | None = None

    def start(self, on_message, on_failure) -> None:
        self.on_message = on_message
        self.on_failure = on_failure

    def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise WorkerCrashedError("transport closed")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True

    def reply(self, message: dict[str, Any]) -> None:
        assert self.on_message is not None
        self.on_message(message)

    def crash(self, exc: BaseException | None = None) -> None:
        assert self.on_failure is not None
        self.on_failure(exc or WorkerCrashedError("Embedding worker exited unexpectedly (exit code 1)."))


class RecordingRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def plot_corpus(self, corpus_3d, texts) -> None:
        self.calls.append(("plot_corpus", (list(corpus_3d), list(texts))))

    def plot_query(self, point, text) -> None:
        self.calls.append(("plot_query", (point, text)))

    def highlight(self, index) -> None:
        self.calls.append(("highlight", index))


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture()
def engine(fake_loader: FakeLoader) -> EmbeddingEngine:
    return EmbeddingEngine("fake-model", loader=fake_loader)


@pytest.fixture()
def runtime(engine: EmbeddingEngine) -> WorkerRuntime:
    return WorkerRuntime(engine, n_components=3)


@pytest.fixture()
def inline_transport(runtime: WorkerRuntime) -> InlineTransport:
    return InlineTransport(runtime)


@pytest.fixture()
def scripted_transport() -> ScriptedTransport:
    return ScriptedTransport()
