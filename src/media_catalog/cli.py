"""CLI for media-catalog.

Commands:
    ingest <path>              - Ingest a file or directory under a folder label
    folders                    - List folders, newest first
    files <folder-id>          - Show one page of a folder listing
    fix-content-types <path>   - Re-sniff local files and correct stored content types
    delete <file-id>           - Delete a file's blob and record
    serve                      - Run the HTTP API
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, TypeVar
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from media_catalog.clients.catalog_api import CatalogApiClient
from media_catalog.config import settings
from media_catalog.context import CatalogContext, create_context
from media_catalog.errors import CatalogError, InputInvalid
from media_catalog.logging_setup import configure_logging
from media_catalog.models.enums import IngestOutcome, TypeFilter
from media_catalog.pagination import CatalogBrowser
from media_catalog.schemas import FileOut
from media_catalog.services.catalog_writer import build_storage_path
from media_catalog.utils.content_type import medium_of, sniff_content_type_from_path

app = typer.Typer(
    name="media-catalog",
    help="media-catalog: content-addressed media ingestion and catalog browsing",
    no_args_is_help=True,
)
console = Console()

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


async def open_context() -> CatalogContext:
    configure_logging(settings.log_level)
    ctx = create_context(settings)
    await ctx.init_db()
    return ctx


def collect_files(path: Path, recursive: bool) -> list[tuple[Path, str]]:
    """Return ``(file, relative_path)`` pairs below ``path``, hidden files skipped.

    A single file is its own relative path.
    """
    if path.is_file():
        return [(path, path.name)]

    pattern = "**/*" if recursive else "*"
    found: list[tuple[Path, str]] = []
    for f in sorted(path.glob(pattern)):
        relative = f.relative_to(path)
        if not f.is_file() or any(part.startswith(".") for part in relative.parts):
            continue
        found.append((f, relative.as_posix()))
    return found


def parse_folder_argument(raw: str) -> UUID | None:
    if raw in ("", "root"):
        return None
    try:
        return UUID(raw)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid folder id: {raw}")
        raise typer.Exit(1) from None


@app.command()
def ingest(
    path: Annotated[Path, typer.Argument(help="File or directory to ingest")],
    folder_name: Annotated[
        str, typer.Option("--folder-name", "-f", help="Logical folder label (empty for root)")
    ] = "",
    recursive: Annotated[
        bool, typer.Option("--recursive/--no-recursive", "-r", help="Walk subdirectories")
    ] = True,
    api_url: Annotated[
        str | None,
        typer.Option("--api-url", help="Upload through a running API instead of in-process"),
    ] = None,
) -> None:
    """Ingest files into the catalog.

    Each file is fingerprinted and stored once; files whose content is
    already catalogued are reported as duplicates. A failing file is
    reported and the remaining files are still processed.
    """
    if not path.exists():
        console.print(f"[red]Error:[/red] Path does not exist: {path}")
        raise typer.Exit(1)

    files_to_process = collect_files(path, recursive)
    if not files_to_process:
        console.print("[yellow]No files found to ingest.[/yellow]")
        raise typer.Exit(0)

    label = folder_name or "(root)"
    console.print(f"[blue]Ingesting {len(files_to_process)} file(s) into {label}...[/blue]\n")

    async def _ingest() -> tuple[int, int, int]:
        ingested = duplicates = failed = 0

        if api_url:
            configure_logging(settings.log_level)
            async with CatalogApiClient(api_url) as client:
                for file_path, relative_path in files_to_process:
                    console.print(f"  Uploading: {relative_path}...", end=" ")
                    try:
                        result = await client.upload_file(
                            folder_name, relative_path, file_path.read_bytes()
                        )
                    except (CatalogError, OSError) as e:
                        console.print(f"[red]ERROR[/red]: {e}")
                        failed += 1
                        continue
                    if result.outcome is IngestOutcome.DUPLICATE:
                        console.print("[yellow]SKIP[/yellow] (duplicate)")
                        duplicates += 1
                    else:
                        console.print(f"[green]OK[/green] → {result.download_url}")
                        ingested += 1
            return ingested, duplicates, failed

        ctx = await open_context()
        try:
            for file_path, relative_path in files_to_process:
                console.print(f"  Processing: {relative_path}...", end=" ")
                try:
                    data = file_path.read_bytes()
                    async with ctx.session_factory() as session:
                        result = await ctx.writer(session).ingest(
                            folder_name, relative_path, data
                        )
                except (CatalogError, OSError) as e:
                    console.print(f"[red]ERROR[/red]: {e}")
                    failed += 1
                    continue
                if result.is_duplicate:
                    console.print("[yellow]SKIP[/yellow] (duplicate)")
                    duplicates += 1
                else:
                    console.print(f"[green]OK[/green] → {result.retrieval_url}")
                    ingested += 1
        finally:
            await ctx.aclose()
        return ingested, duplicates, failed

    ingested, duplicates, failed = run_async(_ingest())

    console.print()
    console.print(
        f"[bold]Summary:[/bold] {ingested} ingested, {duplicates} duplicates, {failed} failed"
    )
    if failed:
        raise typer.Exit(1)


@app.command()
def folders() -> None:
    """List folders, newest first."""
    async def _folders() -> None:
        ctx = await open_context()
        try:
            async with ctx.session_factory() as session:
                records = await ctx.folders(session).list_folders()
        finally:
            await ctx.aclose()

        if not records:
            console.print("[yellow]No folders found.[/yellow]")
            return

        table = Table(title="Folders")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Created")
        for folder in records:
            table.add_row(
                str(folder.folder_id), folder.name, folder.created_at.strftime("%Y-%m-%d %H:%M")
            )
        console.print(table)

    run_async(_folders())


@app.command()
def files(
    folder_id: Annotated[str, typer.Argument(help="Folder id, or 'root' for uncategorized files")],
    page: Annotated[int, typer.Option("--page", "-p", help="Page number to show")] = 1,
    filter_type: Annotated[
        str, typer.Option("--filter", help="all, image or video")
    ] = TypeFilter.ALL.value,
    page_size: Annotated[int, typer.Option(help="Files per page")] = 20,
) -> None:
    """Show one page of a folder listing, newest first."""
    folder = parse_folder_argument(folder_id)

    async def _files() -> None:
        ctx = await open_context()
        try:
            browser = CatalogBrowser(ctx, folder, page_size=page_size, type_filter=filter_type)
            await browser.open()
            cache = browser.cache
            if page > 1 and not await cache.go_to_page(page):
                console.print(
                    f"[yellow]Page {page} does not exist; showing page {cache.current_page}."
                    "[/yellow]"
                )
        finally:
            await ctx.aclose()

        if not cache.records:
            console.print("[yellow]No files found.[/yellow]")
            return

        table = Table(title=f"Page {cache.current_page} of ~{cache.estimated_page_count}")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Kind")
        table.add_column("Type")
        table.add_column("Size", justify="right")
        table.add_column("Created")
        for record in cache.records:
            out = FileOut.model_validate(record)
            table.add_row(
                str(out.id),
                out.name,
                medium_of(out.mime_type).value,
                out.mime_type,
                str(out.size_bytes),
                out.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
        console.print(table)
        if cache.has_next:
            console.print("[dim]More files on the next page.[/dim]")

    run_async(_files())


@app.command("fix-content-types")
def fix_content_types(
    path: Annotated[Path, typer.Argument(help="Local copy of the uploaded directory")],
    folder_name: Annotated[
        str, typer.Option("--folder-name", "-f", help="Folder the files were ingested under")
    ] = "",
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Report changes without writing them")
    ] = False,
) -> None:
    """Re-sniff local files and correct the stored content type where it differs."""
    if not path.is_dir():
        console.print(f"[red]Error:[/red] Not a directory: {path}")
        raise typer.Exit(1)

    async def _fix() -> tuple[int, int]:
        updated = missing = 0
        ctx = await open_context()
        try:
            async with ctx.session_factory() as session:
                folder_id = None
                if folder_name:
                    folder = await ctx.folders(session).find_by_name(folder_name)
                    if folder is None:
                        console.print(f"[red]Error:[/red] Unknown folder: {folder_name}")
                        raise typer.Exit(1)
                    folder_id = folder.folder_id

                query = ctx.query_engine(session)
                writer = ctx.writer(session)
                for file_path, relative_path in collect_files(path, recursive=True):
                    try:
                        storage_path = build_storage_path(folder_id, relative_path)
                    except InputInvalid as e:
                        console.print(f"  [red]ERROR[/red] {relative_path}: {e}")
                        continue
                    record = await query.find_by_storage_path(storage_path)
                    if record is None:
                        console.print(f"  [yellow]MISSING[/yellow] {relative_path}")
                        missing += 1
                        continue

                    detected = sniff_content_type_from_path(file_path)
                    if detected == record.content_type:
                        continue
                    console.print(
                        f"  [green]UPDATE[/green] {relative_path}: "
                        f"{record.content_type} → {detected}"
                    )
                    if not dry_run:
                        await writer.correct_content_type(record.file_id, detected)
                    updated += 1
        finally:
            await ctx.aclose()
        return updated, missing

    updated, missing = run_async(_fix())
    verb = "would update" if dry_run else "updated"
    console.print(f"\n[bold]Summary:[/bold] {updated} {verb}, {missing} not in catalog")


@app.command()
def delete(
    file_id: Annotated[UUID, typer.Argument(help="File id to delete")],
) -> None:
    """Delete a file's blob and its record."""
    async def _delete() -> None:
        ctx = await open_context()
        try:
            async with ctx.session_factory() as session:
                await ctx.writer(session).delete(file_id)
        except CatalogError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
        finally:
            await ctx.aclose()
        console.print(f"[green]Deleted {file_id}.[/green]")

    run_async(_delete())


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port")] = None,
    reload: Annotated[bool, typer.Option(help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "media_catalog.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
