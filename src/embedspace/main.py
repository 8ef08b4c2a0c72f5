import asyncio

from typer import Exit, Option, Typer
from typing import Annotated, Optional
from rich.console import Console

from .config import WorkerSettings, resolve_corpus_path, resolve_settings
from .engine import EmbeddingEngine
from .errors import EmbedspaceError, RequestFailedError
from .logging_utils import configure_logging
from .render import ConsoleRenderer
from .search import SearchOrchestrator, load_corpus
from .session import open_session
from .worker import InlineTransport, WorkerRuntime, WorkerTransport

app = Typer(help="Semantic search over a corpus projected into 3-D.")

STATUS_MESSAGES = {
    "loading": "Loading embedding model...",
    "indexing": "Creating search index...",
    "ready": "Ready",
    "searching": "Searching...",
    "error": "An error occurred.",
}


async def search_and_render(
    orchestrator: SearchOrchestrator,
    renderer: ConsoleRenderer,
    query: str,
    *,
    limit: int | None = None,
) -> None:
    try:
        outcome = await orchestrator.search(query)
    except ValueError:
        renderer.console.print("[bold red]You need to provide a query[/]")
        return
    except RequestFailedError as exc:
        renderer.show_error(f"Search failed: {exc}")
        return
    renderer.show_results(outcome, limit=limit)


async def run_demo(
    corpus_path: str | None,
    queries: list[str],
    *,
    settings: WorkerSettings,
    interactive: bool = False,
    limit: int | None = None,
    transport: WorkerTransport | None = None,
    console: Console | None = None,
) -> None:
    console = console or Console()
    renderer = ConsoleRenderer(console)
    texts = load_corpus(corpus_path)

    with console.status(status=STATUS_MESSAGES["loading"]) as status:

        def on_state(state: str) -> None:
            status.update(STATUS_MESSAGES.get(state, state))

        try:
            async with open_session(
                settings,
                texts,
                transport=transport,
                renderer=renderer,
                on_state=on_state,
            ) as orchestrator:
                status.stop()
                for query in queries:
                    await search_and_render(orchestrator, renderer, query, limit=limit)
                while interactive:
                    query = await asyncio.to_thread(
                        console.input, "[bold cyan]Query[/] (blank to quit): "
                    )
                    if not query.strip():
                        break
                    await search_and_render(orchestrator, renderer, query, limit=limit)
        except EmbedspaceError as exc:
            status.stop()
            renderer.show_error(str(exc))
            raise Exit(code=1)


@app.command()
def demo(
    query: Annotated[
        Optional[list[str]],
        Option(
            "--query",
            "-q",
            help="Query to run against the corpus; repeat for several. Prompts interactively when omitted.",
        ),
    ] = None,
    corpus: Annotated[
        Optional[str],
        Option("--corpus", "-c", help="Corpus file: a JSON list of strings or one text per line."),
    ] = None,
    model: Annotated[
        Optional[str], Option("--model", "-m", help="sentence-transformers model name.")
    ] = None,
    limit: Annotated[
        Optional[int], Option("--limit", "-n", min=1, help="Show only the top N results.")
    ] = None,
    inline: Annotated[
        bool,
        Option("--inline", help="Run the embedding worker on the main event loop instead of a child process."),
    ] = False,
    log_level: Annotated[str, Option("--log-level", help="Logging level.")] = "INFO",
) -> None:
    """Index a corpus and search it."""
    settings = resolve_settings(model_name=model, log_level=log_level)
    configure_logging(settings.log_level)
    transport: WorkerTransport | None = None
    if inline:
        engine = EmbeddingEngine.from_settings(settings)
        transport = InlineTransport(WorkerRuntime(engine, n_components=settings.n_components))
    try:
        asyncio.run(
            run_demo(
                resolve_corpus_path(corpus),
                list(query or []),
                settings=settings,
                interactive=not query,
                limit=limit,
                transport=transport,
            )
        )
    except ValueError as exc:
        Console(stderr=True).print(f"[bold red]{exc}[/]")
        raise Exit(code=2)


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", "-p", help="Port to listen on.")] = 8000,
    log_level: Annotated[str, Option("--log-level", help="Logging level.")] = "INFO",
) -> None:
    """Serve the search API over HTTP."""
    from .server import run_server

    configure_logging(log_level)
    run_server(host=host, port=port)
