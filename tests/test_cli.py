"""CLI tests for the demo command."""

from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer import Exit
from typer.testing import CliRunner

import embedspace.main as main_module
from embedspace.config import resolve_settings
from embedspace.engine import EmbeddingEngine
from embedspace.worker import InlineTransport, WorkerRuntime

from .conftest import FakeLoader


def _inline(loader: FakeLoader) -> InlineTransport:
    return InlineTransport(WorkerRuntime(EmbeddingEngine("fake-model", loader=loader)))


def test_demo_passes_queries_and_corpus(tmp_path: Path, monkeypatch) -> None:
    called: dict[str, object] = {}

    async def fake_run_demo(corpus_path, queries, *, settings, interactive=False, limit=None, transport=None, console=None):
        called["corpus_path"] = corpus_path
        called["queries"] = queries
        called["interactive"] = interactive
        called["limit"] = limit
        called["model"] = settings.model_name
        called["transport"] = transport

    monkeypatch.setattr(main_module, "run_demo", fake_run_demo)
    corpus = tmp_path / "corpus.txt"

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        [
            "demo",
            "-q",
            "a feline rested",
            "-q",
            "stocks",
            "--corpus",
            str(corpus),
            "--model",
            "org/model",
            "--limit",
            "2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert called["queries"] == ["a feline rested", "stocks"]
    assert called["corpus_path"] == str(corpus)
    assert called["interactive"] is False
    assert called["limit"] == 2
    assert called["model"] == "org/model"
    assert called["transport"] is None


def test_demo_without_queries_is_interactive(monkeypatch) -> None:
    called: dict[str, object] = {}

    async def fake_run_demo(corpus_path, queries, *, settings, interactive=False, limit=None, transport=None, console=None):
        called["interactive"] = interactive
        called["transport"] = transport

    monkeypatch.setattr(main_module, "run_demo", fake_run_demo)
    monkeypatch.delenv("EMBEDSPACE_CORPUS_PATH", raising=False)

    result = CliRunner().invoke(main_module.app, ["demo", "--inline"])

    assert result.exit_code == 0, result.output
    assert called["interactive"] is True
    assert isinstance(called["transport"], InlineTransport)


def test_demo_with_missing_corpus_exits_with_usage_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        main_module.app,
        ["demo", "-q", "x", "--corpus", str(tmp_path / "missing.txt")],
    )

    assert result.exit_code == 2


@pytest.mark.asyncio
async def test_run_demo_prints_layout_and_results(tmp_path: Path) -> None:
    corpus = tmp_path / "corpus.txt"
    corpus.write_text("a cat sat\na dog ran\nthe stock market fell\n")
    console = Console(record=True, width=120)

    await main_module.run_demo(
        str(corpus),
        ["a feline rested", "   "],
        settings=resolve_settings(),
        transport=_inline(FakeLoader(dim=64)),
        console=console,
    )

    output = console.export_text()
    assert "Corpus layout" in output
    assert "Results for 'a feline rested'" in output
    assert "a cat sat" in output
    assert "You need to provide a query" in output


@pytest.mark.asyncio
async def test_run_demo_reports_load_failure(tmp_path: Path) -> None:
    console = Console(record=True, width=120)

    with pytest.raises(Exit) as excinfo:
        await main_module.run_demo(
            None,
            ["a cat"],
            settings=resolve_settings(),
            transport=_inline(FakeLoader(error=OSError("no weights"))),
            console=console,
        )

    assert excinfo.value.exit_code == 1
    assert "no weights" in console.export_text()
