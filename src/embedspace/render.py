"""
Console renderer for the corpus layout and search results.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import Coordinate3D, SearchOutcome, vector_preview


def _fmt_point(point: Coordinate3D) -> str:
    return "(" + ", ".join(f"{value:+.4f}" for value in point) + ")"


class ConsoleRenderer:
    """Prints what a 3-D scene would draw, as rich tables."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.texts: list[str] = []
        self.corpus_3d: list[Coordinate3D] = []
        self.query_point: Coordinate3D | None = None
        self.highlighted: int | None = None

    def plot_corpus(self, corpus_3d: list[Coordinate3D], texts: list[str]) -> None:
        self.corpus_3d = list(corpus_3d)
        self.texts = list(texts)
        table = Table(title="Corpus layout", title_justify="left")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Text")
        table.add_column("Position", style="cyan")
        for index, (text, point) in enumerate(zip(texts, corpus_3d)):
            table.add_row(str(index), text, _fmt_point(point))
        self.console.print(table)

    def plot_query(self, point: Coordinate3D, text: str) -> None:
        self.query_point = point
        self.console.print(f"[bold magenta]Query[/] {text!r} at {_fmt_point(point)}")

    def highlight(self, index: int | None) -> None:
        self.highlighted = index

    def show_results(self, outcome: SearchOutcome, *, limit: int | None = None) -> None:
        results = outcome.results if limit is None else outcome.results[:limit]
        table = Table(
            title=f"Results for {outcome.query!r}",
            title_justify="left",
            caption=f"Query vector {vector_preview(outcome.embedding.vector(0))}",
        )
        table.add_column("Rank", justify="right", style="dim")
        table.add_column("#", justify="right")
        table.add_column("Similarity", justify="right")
        table.add_column("Text")
        for rank, result in enumerate(results, start=1):
            style = "bold green" if result.index == self.highlighted else None
            table.add_row(
                str(rank), str(result.index), f"{result.score:.4f}", result.text, style=style
            )
        self.console.print(table)

    def show_error(self, message: str) -> None:
        self.console.print(
            Panel(message, title="Error", title_align="left", border_style="bold red")
        )
