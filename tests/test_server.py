"""Tests for the HTTP search API."""

from __future__ import annotations

import time

from fastapi.testclient import TestClient

from embedspace.engine import EmbeddingEngine
from embedspace.server import create_app
from embedspace.session import open_session
from embedspace.worker import InlineTransport, WorkerRuntime

from .conftest import FakeLoader

CORPUS = ["a cat sat", "a dog ran", "the stock market fell"]


def _app(loader: FakeLoader):
    def factory():
        runtime = WorkerRuntime(EmbeddingEngine("fake-model", loader=loader))
        return open_session(corpus=CORPUS, transport=InlineTransport(runtime), index=False)

    return create_app(session_factory=factory)


def _wait_for_state(client: TestClient, state: str, timeout: float = 10.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get("/api/status").json()
        if data["state"] == state or time.monotonic() > deadline:
            return data
        time.sleep(0.02)


def test_status_reports_ready_after_indexing() -> None:
    with TestClient(_app(FakeLoader(dim=32))) as client:
        data = _wait_for_state(client, "ready")

    assert data["readiness"] == "ready"
    assert data["state"] == "ready"
    assert data["indexed"] is True
    assert data["corpus_size"] == 3
    assert data["error"] is None


def test_corpus_endpoint_returns_points() -> None:
    with TestClient(_app(FakeLoader(dim=32))) as client:
        _wait_for_state(client, "ready")
        response = client.get("/api/corpus")

    assert response.status_code == 200
    data = response.json()
    assert data["dimension"] == 32
    assert [item["text"] for item in data["items"]] == CORPUS
    assert all(len(item["point"]) == 3 for item in data["items"])
    assert data["items"][0]["preview"].endswith(", ...]")


def test_corpus_endpoint_before_indexing() -> None:
    with TestClient(_app(FakeLoader(delay=1.0))) as client:
        response = client.get("/api/corpus")

    assert response.status_code == 503
    assert "not indexed" in response.json()["error"]


def test_search_endpoint_ranks_corpus() -> None:
    with TestClient(_app(FakeLoader(dim=64))) as client:
        _wait_for_state(client, "ready")
        response = client.post("/api/search", json={"query": "a feline rested"})
        limited = client.post("/api/search", json={"query": "a feline rested", "limit": 1})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "a feline rested"
    assert len(data["query_3d"]) == 3
    assert data["results"][0]["text"] == "a cat sat"
    assert len(data["results"]) == 3
    assert len(limited.json()["results"]) == 1


def test_search_endpoint_rejects_blank_query() -> None:
    with TestClient(_app(FakeLoader())) as client:
        _wait_for_state(client, "ready")
        response = client.post("/api/search", json={"query": "   "})

    assert response.status_code == 400
    assert "error" in response.json()


def test_search_endpoint_before_indexing_conflicts() -> None:
    with TestClient(_app(FakeLoader(delay=1.0))) as client:
        response = client.post("/api/search", json={"query": "a cat"})

    assert response.status_code == 409


def test_search_endpoint_after_load_failure() -> None:
    with TestClient(_app(FakeLoader(error=OSError("no weights")))) as client:
        status = _wait_for_state(client, "error")
        response = client.post("/api/search", json={"query": "a cat"})

    assert status["readiness"] == "error"
    assert "no weights" in status["error"]
    assert response.status_code == 503
