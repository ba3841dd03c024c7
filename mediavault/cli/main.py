"""
MediaVault command line interface.

Commands
--------
    serve                  Run the API server
    process IMAGE_ID...    Run jobs for images locally and report the outcome
    regenerate-thumbnails  Rebuild metadata and thumbnails for every image

Examples
--------
    mediavault serve --port 8080
    mediavault process abc123 def456 --kind metadata-and-thumbnail
    mediavault --config prod.yaml regenerate-thumbnails
"""

import asyncio
from functools import wraps
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from rich.table import Table

from mediavault import __version__
from mediavault.cli.console import ErrorRenderer, get_console, set_verbose_mode, tip
from mediavault.core.config import Config
from mediavault.core.config_loaders import load_config
from mediavault.core.jobs import (
    JobKind,
    JobLookup,
    JobScheduler,
    JobStatus,
    create_job_store,
)
from mediavault.core.logging import configure_logging, get_logger
from mediavault.media.handlers import build_handlers
from mediavault.media.library import MediaLibrary

logger = get_logger(__name__)

_STATUS_STYLES = {
    JobStatus.COMPLETE.value: "green",
    JobStatus.FAILED.value: "red",
    JobStatus.PENDING.value: "yellow",
    JobStatus.PROCESSING.value: "cyan",
}


def safe_cli_command(
    operation_name: str,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator to wrap CLI commands with user-friendly error handling.

    Args:
        operation_name: Human-readable operation name for error context

    Returns:
        Decorator function that wraps the command with error handling
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except typer.Exit:
                raise
            except Exception as e:
                logger.error(f"[{operation_name}] {type(e).__name__}: {e}")
                ErrorRenderer.render(e, context=f"While running {operation_name}")
                raise typer.Exit(code=1)

        return wrapper

    return decorator


app = typer.Typer(
    name="mediavault",
    help="Media library backend with background image processing",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"MediaVault version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml (default: ./config.yaml)",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-V", help="Enable debug logging and tracebacks"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """MediaVault - upload API and background image processing."""
    ctx.obj = {"config_path": config_path, "verbose": verbose}
    set_verbose_mode(verbose)


def _load_config(ctx: typer.Context) -> Config:
    options = ctx.obj or {}
    config = load_config(options.get("config_path"))
    level = "DEBUG" if options.get("verbose") else config.logging.level
    configure_logging(level=level, log_file=config.log_path)
    return config


def _build_scheduler(
    config: Config, library: MediaLibrary, concurrency: Optional[int] = None
) -> JobScheduler:
    return JobScheduler(
        build_handlers(library, config),
        concurrency=concurrency or config.queue.concurrency,
        store=create_job_store(config),
    )


async def _run_jobs(
    scheduler: JobScheduler, image_ids: List[str], kind: JobKind
) -> List[JobLookup]:
    for image_id in image_ids:
        scheduler.enqueue(image_id, kind)
    await scheduler.wait_until_idle()
    return scheduler.get_jobs_by_resource_ids(image_ids)


def _print_results(title: str, lookups: List[JobLookup]) -> int:
    """Print a result table. Returns the number of failed jobs."""
    table = Table(title=title)
    table.add_column("Image", style="bold")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Error", overflow="fold")

    failed = 0
    for lookup in lookups:
        if lookup.status == JobStatus.FAILED.value:
            failed += 1
        style = _STATUS_STYLES.get(lookup.status, "dim")
        table.add_row(
            lookup.resource_id,
            lookup.kind.value if lookup.kind else "-",
            f"[{style}]{lookup.status}[/{style}]",
            lookup.error or "",
        )

    get_console().print(table)
    return failed


@app.command("serve")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port number"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Run the API server."""
    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port
    if not 1 <= port <= 65535:
        get_console().print(f"[red]Error: Invalid port number {port}.[/red]")
        raise typer.Exit(code=1)

    console = get_console()
    console.print("\n[cyan]Starting MediaVault API Server[/cyan]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Concurrency: {config.queue.concurrency}")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    from mediavault.api.main import run_server

    try:
        run_server(host=host, port=port, reload=reload, config=config)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@app.command("process")
@safe_cli_command("process")
def process(
    ctx: typer.Context,
    image_ids: List[str] = typer.Argument(..., help="Image ids to process"),
    kind: JobKind = typer.Option(
        JobKind.AI_ANALYSIS, "--kind", "-k", help="Job kind to run"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-n", min=1, help="Jobs to run at once"
    ),
) -> None:
    """Run jobs for the given images and wait for them to finish."""
    config = _load_config(ctx)
    library = MediaLibrary.from_config(config)
    scheduler = _build_scheduler(config, library, concurrency)

    lookups = asyncio.run(_run_jobs(scheduler, image_ids, kind))
    failed = _print_results(f"{kind.value} jobs", lookups)
    if failed:
        tip("Failed jobs can be retried by running the same command again")
        raise typer.Exit(code=1)


@app.command("regenerate-thumbnails")
@safe_cli_command("regenerate-thumbnails")
def regenerate_thumbnails(
    ctx: typer.Context,
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-n", min=1, help="Jobs to run at once"
    ),
) -> None:
    """Rebuild metadata and thumbnails for every image in the library."""
    config = _load_config(ctx)
    library = MediaLibrary.from_config(config)
    image_ids = [record.id for record in library.list_records()]

    console = get_console()
    if not image_ids:
        console.print("[yellow]No images found[/yellow]")
        return

    console.print(f"Found {len(image_ids)} images")
    scheduler = _build_scheduler(config, library, concurrency)
    lookups = asyncio.run(
        _run_jobs(scheduler, image_ids, JobKind.METADATA_AND_THUMBNAIL)
    )
    failed = _print_results("Thumbnail regeneration", lookups)
    if failed:
        raise typer.Exit(code=1)
    console.print("[green]Thumbnail regeneration complete[/green]")


def cli_main() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    cli_main()
