"""
CLI Main - Typer-based command-line interface.

Usage:
    kbsearch init
    kbsearch index notes.json
    kbsearch search "weeknight pasta" --scope recipes --explain
    kbsearch saved list
    kbsearch serve
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from kbsearch.config import KBSearchError, get_settings

app = typer.Typer(
    name="kbsearch",
    help="KB Search - Hybrid search for notes and recipes",
    add_completion=False,
)
saved_app = typer.Typer(help="Manage saved searches")
app.add_typer(saved_app, name="saved")

console = Console()


@app.callback()
def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    query: str = typer.Argument("", help="Search query (empty or * to browse)"),
    mode: str = typer.Option("auto", "--mode", "-m", help="auto | hybrid | semantic | keyword"),
    scope: str = typer.Option("all", "--scope", "-s", help="all | notes | recipes"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of results"),
    tags: list[str] | None = typer.Option(None, "--tag", "-t", help="Filter by tag"),
    explain: bool = typer.Option(False, "--explain", "-e", help="Show fusion details"),
) -> None:
    """Search the knowledge base."""
    raw: dict[str, Any] = {
        "query": query,
        "mode": mode,
        "scope": scope,
        "limit": limit,
        "explain": explain,
    }
    if tags:
        raw["filters"] = {"tags": tags}
    asyncio.run(_search_async(raw))


async def _search_async(raw: dict[str, Any]) -> None:
    """Async search implementation."""
    from kbsearch.interfaces.api.deps import cleanup_services, get_search_engine, init_services

    await init_services()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Searching...", total=None)
            response = await get_search_engine().search(raw)
    except KBSearchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await cleanup_services()

    console.print(
        f"\n[yellow]{response.mode}[/yellow] search for "
        f"[bold]{response.query or '*'}[/bold] ({len(response.results)} results)\n"
    )

    table = Table()
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Kind")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Sources")
    for i, item in enumerate(response.results, 1):
        table.add_row(
            str(i),
            item.id,
            item.title,
            item.doc_kind,
            f"{item.score:.4f}",
            ", ".join(s.value for s in item.sources),
        )
    console.print(table)

    if response.debug:
        debug = response.debug
        console.print(
            Panel(
                f"[bold]Requested:[/bold] {debug.requested_mode.value}  "
                f"[bold]Resolved:[/bold] {debug.resolved_mode.value}  "
                f"[bold]k:[/bold] {debug.k}\n"
                f"[bold]Keyword:[/bold] {debug.keyword_count} "
                f"({debug.keyword.reason or 'ok'})  "
                f"[bold]Semantic:[/bold] {debug.semantic_count} "
                f"({debug.semantic.reason or 'ok'})  "
                f"[bold]Overlap:[/bold] {debug.overlap_count}\n"
                f"[bold]Total:[/bold] {debug.timings_ms.total:.1f} ms",
                title="Debug",
            )
        )


@app.command()
def index(
    notes_file: Path | None = typer.Argument(
        None, help="JSON file with a list of notes to import first"
    ),
) -> None:
    """Import notes and rebuild the semantic index."""
    if notes_file is not None and not notes_file.exists():
        console.print(f"[red]Error:[/red] File not found: {notes_file}")
        raise typer.Exit(1)

    asyncio.run(_index_async(notes_file))


async def _index_async(notes_file: Path | None) -> None:
    """Async indexing implementation."""
    from kbsearch.domains.search import NoteDocument
    from kbsearch.interfaces.api.deps import (
        cleanup_services,
        get_faiss_index,
        get_semantic_retriever,
        get_sqlite_repository,
        init_services,
    )

    settings = get_settings()
    notes: list[NoteDocument] = []
    if notes_file is not None:
        try:
            data = json.loads(notes_file.read_text())
            notes = [NoteDocument.model_validate(item) for item in data]
        except (json.JSONDecodeError, PydanticValidationError) as e:
            console.print(f"[red]Error:[/red] Invalid notes file: {e}")
            raise typer.Exit(1)

    await init_services()
    repo = get_sqlite_repository()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing notes...", total=None)
            for note in notes:
                await repo.upsert_note(note)

            progress.update(task, description="Embedding notes...")
            hashes = await get_semantic_retriever().index_notes(await repo.list_notes())
            for note_id, embedding_hash in hashes.items():
                await repo.set_embedding_hash(note_id, embedding_hash)

            progress.update(task, description="Saving index...")
            await get_faiss_index().save(settings.faiss_index_path)
    except KBSearchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await cleanup_services()

    console.print(f"\n[green]Indexed {len(hashes)} notes[/green]")
    console.print(f"[dim]Index: {settings.faiss_index_path}[/dim]")


@saved_app.command("list")
def saved_list() -> None:
    """List saved searches."""
    asyncio.run(_saved_async("list"))


@saved_app.command("save")
def saved_save(
    name: str = typer.Argument(..., help="Name for the saved search"),
    query: str = typer.Argument("", help="Search query"),
    mode: str = typer.Option("auto", "--mode", "-m"),
    scope: str = typer.Option("all", "--scope", "-s"),
) -> None:
    """Save a search under a name."""
    spec = {"query": query, "mode": mode, "scope": scope}
    asyncio.run(_saved_async("save", name=name, query=spec))


@saved_app.command("delete")
def saved_delete(
    saved_search_id: str = typer.Argument(..., help="Saved search ID"),
) -> None:
    """Delete a saved search."""
    asyncio.run(_saved_async("delete", saved_search_id=saved_search_id))


async def _saved_async(action: str, **kwargs: Any) -> None:
    """Run one saved-search action against the local database."""
    from kbsearch.interfaces.api.deps import (
        cleanup_services,
        get_saved_search_service,
        get_sqlite_repository,
    )

    await get_sqlite_repository().initialize()
    service = get_saved_search_service()
    try:
        if action == "list":
            items = await service.list()
            table = Table(title="Saved Searches")
            table.add_column("ID", style="cyan")
            table.add_column("Name")
            table.add_column("Query")
            table.add_column("Scope")
            table.add_column("Updated", style="dim")
            for item in items:
                table.add_row(
                    item.id,
                    item.name,
                    item.query.query or "*",
                    item.query.scope.value,
                    item.updated_at.isoformat() if item.updated_at else "",
                )
            console.print(table)
        elif action == "save":
            saved = await service.create(kwargs["name"], kwargs["query"])
            console.print(f"[green]Saved[/green] {saved.name} [dim]({saved.id})[/dim]")
        else:
            await service.delete(kwargs["saved_search_id"])
            console.print("[green]Deleted[/green]")
    except KBSearchError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await cleanup_services()


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting KB Search API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "kbsearch.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level=settings.log_level.lower(),
    )


@app.command()
def init() -> None:
    """Create the data directory and database schema."""
    asyncio.run(_init_async())


async def _init_async() -> None:
    """Async initialization."""
    from kbsearch.interfaces.api.deps import cleanup_services, get_sqlite_repository

    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.faiss_index_path.mkdir(parents=True, exist_ok=True)

    await get_sqlite_repository().initialize()
    await cleanup_services()

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {settings.db_path}[/dim]")


@app.command()
def version() -> None:
    """Show version information."""
    from kbsearch import __version__

    console.print(f"KB Search v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
