"""
Command line interface for the GitHub repository importer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .errors import ImporterError
from .logger import configure_logging, get_logger
from .services import ImportStage, RepositoryImporter
from .settings import settings
from .storage import ContainerRegistry

app = typer.Typer(name="repoimport", help="Import public GitHub repositories into sharing containers.")
configure_logging(console=False)
log = get_logger(__name__)
console = Console()

_STAGE_LABELS = {
    ImportStage.RATE_CHECKED: "Parsing locator",
    ImportStage.PARSED: "Fetching repository metadata",
    ImportStage.METADATA_FETCHED: "Checking repository size",
    ImportStage.SIZE_GATED: "Downloading archive",
    ImportStage.ARCHIVE_FETCHED: "Extracting files",
    ImportStage.EXTRACTED: "Uploading files",
    ImportStage.UPLOADED: "Saving container",
    ImportStage.COMMITTED: "Done",
    ImportStage.ERRORED: "Failed",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs to a file."),
) -> None:
    if log_file or verbose:
        configure_logging(
            level=logging.DEBUG if verbose else logging.INFO, log_file=log_file
        )


@app.command("import")
def import_repo(
    url: str = typer.Argument(..., help="Repository URL, e.g. https://github.com/owner/repo"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch to import."),
) -> None:
    """Download a repository snapshot and store it as a new container."""
    importer = RepositoryImporter()
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Checking rate limit", total=None)

        def on_stage(stage: ImportStage) -> None:
            progress.update(task, description=_STAGE_LABELS.get(stage, stage.value))

        try:
            result = importer.import_repository(url, branch=branch, client_id="cli", on_stage=on_stage)
        except ImporterError as exc:
            console.print(f"[red]Import failed ({exc.status_code}):[/red] {exc.message}")
            raise typer.Exit(code=1) from exc

    info = result.repo_info
    console.print(
        f"Imported [bold]{info.owner}/{info.repo}[/bold]@{info.branch} -> {result.container_name}"
    )
    console.print(
        f"files={result.file_count} skipped={result.skipped_count} "
        f"failed={result.failed_count} bytes={result.total_size_bytes}"
    )
    console.print(f"container id: {result.container_id}")
    console.print(f"password: {result.password}")


@app.command()
def info(url: str = typer.Argument(..., help="Repository URL.")) -> None:
    """Show repository metadata without importing."""
    importer = RepositoryImporter()
    try:
        details = importer.repository_info(url)
    except ImporterError as exc:
        console.print(f"[red]Lookup failed ({exc.status_code}):[/red] {exc.message}")
        raise typer.Exit(code=1) from exc

    table = Table(show_header=False)
    table.add_row("repository", f"{details.owner}/{details.repo}")
    table.add_row("branch", details.branch)
    table.add_row("default branch", details.default_branch)
    table.add_row("description", details.description)
    table.add_row("language", details.language)
    table.add_row("stars", str(details.stars))
    table.add_row("forks", str(details.forks))
    table.add_row("size", details.size_human)
    table.add_row("too big", "yes" if details.is_too_big else "no")
    console.print(table)


@app.command("list")
def list_containers(limit: int = typer.Option(20, "--limit", help="Rows to show.")) -> None:
    """List the most recent containers."""
    registry = ContainerRegistry()
    for container in registry.list_recent(limit):
        typer.echo(f"- {container.name} ({container.id}) files={len(container.files)} source={container.source or '-'}")


@app.command()
def serve() -> None:
    """Run the HTTP API."""
    from .api.main import run

    configure_logging()
    log.info("api_starting", host=settings.api_host, port=settings.api_port)
    run()


if __name__ == "__main__":  # pragma: no cover
    app()
