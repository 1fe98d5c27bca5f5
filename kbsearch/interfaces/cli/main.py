"""
CLI Main - Typer-based command-line interface.

Usage:
    kbsearch init
    kbsearch import data/corpus.jsonl
    kbsearch build-index
    kbsearch search "wheelchair access at the north gate"
    kbsearch serve
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

app = typer.Typer(
    name="kbsearch",
    help="KBSearch - Hybrid knowledge retrieval",
    add_completion=False,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    from kbsearch.config import get_settings

    logging.basicConfig(
        level=logging.DEBUG if verbose else get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    top_k: int = typer.Option(5, "--top-k", "-k", help="Number of results (max 20)"),
    organization: str | None = typer.Option(None, "--org", "-o", help="Organization scope"),
    event: str | None = typer.Option(None, "--event", "-e", help="Event scope"),
    hybrid: bool = typer.Option(True, "--hybrid/--semantic-only", help="Rerank with key terms"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each search tier"),
) -> None:
    """Search the knowledge base."""
    _configure_logging(verbose)
    asyncio.run(_search_async(query, top_k, organization, event, hybrid))


async def _search_async(
    query: str,
    top_k: int,
    organization: str | None,
    event: str | None,
    hybrid: bool,
) -> None:
    """Async search implementation."""
    from pydantic import ValidationError

    from kbsearch.config import KBSearchError
    from kbsearch.domains.search import SearchRequest
    from kbsearch.services import open_services

    try:
        request = SearchRequest(
            query=query,
            top_k=top_k,
            organization_id=organization,
            event_id=event,
            use_hybrid=hybrid,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    try:
        services = await open_services()
    except KBSearchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Searching...", total=None)
            report = await services.orchestrator.search_with_report(request)
    except KBSearchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await services.close()

    if not report.hits:
        console.print(
            Panel(
                f"No passages matched [bold]{query}[/bold].",
                title="No Results",
                style="yellow",
            )
        )
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Score", style="green", justify="right")
    table.add_column("Document", style="cyan")
    table.add_column("Source", style="magenta")
    table.add_column("Passage")

    for i, hit in enumerate(report.hits, 1):
        table.add_row(
            str(i),
            f"{hit.score:.3f}",
            f"{hit.title} [dim]#{hit.chunk_index}[/dim]",
            hit.provenance.value,
            hit.content,
        )

    console.print(table)
    console.print(
        f"\n[dim]Method: {report.method.value}, "
        f"confidence: {report.confidence:.0%}, "
        f"tiers: {' -> '.join(tier.value for tier in report.tiers)}[/dim]"
    )


@app.command()
def init(
    data_dir: Path | None = typer.Option(None, "--data", "-d", help="Data directory"),
) -> None:
    """Create the data directory and database schema."""
    _configure_logging(False)
    asyncio.run(_init_async(data_dir))


async def _init_async(data_dir: Path | None) -> None:
    """Async initialization."""
    from kbsearch.adapters.sqlite import KnowledgeRepository
    from kbsearch.config import get_settings

    settings = get_settings()
    data_path = data_dir or settings.data_dir
    db_path = data_path / settings.db_path.name if data_dir else settings.db_path

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Initializing...", total=2)

        progress.update(task, description="Creating directories...")
        data_path.mkdir(parents=True, exist_ok=True)
        Path(settings.faiss_index_path).mkdir(parents=True, exist_ok=True)
        progress.advance(task)

        progress.update(task, description="Initializing SQLite database...")
        repo = KnowledgeRepository(db_path)
        await repo.initialize()
        await repo.close()
        progress.advance(task)

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {db_path}[/dim]")


@app.command("import")
def import_corpus(
    jsonl_path: Path = typer.Argument(..., help="JSONL file of documents and chunks"),
) -> None:
    """Import pre-chunked, pre-embedded documents."""
    if not jsonl_path.exists():
        console.print(f"[red]Error:[/red] File not found: {jsonl_path}")
        raise typer.Exit(1)

    _configure_logging(False)
    asyncio.run(_import_async(jsonl_path))


async def _import_async(jsonl_path: Path) -> None:
    from kbsearch.adapters.sqlite import KnowledgeRepository, import_jsonl
    from kbsearch.config import get_settings

    settings = get_settings()
    repo = KnowledgeRepository(settings.db_path)
    await repo.initialize()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Importing {jsonl_path.name}...", total=None)
            doc_count, chunk_count = await import_jsonl(repo, jsonl_path)
    finally:
        await repo.close()

    console.print(f"\n[green]Imported {doc_count} documents, {chunk_count} chunks[/green]")
    console.print("[dim]Run `kbsearch build-index` to refresh the vector index.[/dim]")


@app.command("build-index")
def build_index() -> None:
    """Rebuild the FAISS index from stored chunk embeddings."""
    _configure_logging(False)
    asyncio.run(_build_index_async())


async def _build_index_async() -> None:
    from kbsearch.adapters.faiss import build_index_from_repository
    from kbsearch.adapters.sqlite import KnowledgeRepository
    from kbsearch.config import get_settings

    settings = get_settings()
    repo = KnowledgeRepository(settings.db_path)
    await repo.initialize()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Building FAISS index...", total=None)
            manifest = await build_index_from_repository(
                repo,
                settings.faiss_index_path,
                model=settings.embedding_model,
                dimension=settings.embedding_dimension,
            )
    finally:
        await repo.close()

    table = Table(title="Index Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Model", manifest.model)
    table.add_row("Dimension", str(manifest.dim))
    table.add_row("Vectors", str(manifest.chunk_count))
    table.add_row("Skipped", str(manifest.skipped_count))
    console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from kbsearch.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting KBSearch API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "kbsearch.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from kbsearch import __version__

    console.print(f"KBSearch v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
