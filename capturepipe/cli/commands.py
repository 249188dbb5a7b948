"""CLI commands for capturepipe using Typer and Rich.

Implements 4 CLI commands:
- run: Generate test video and captures, build manifest, upload everything
- manifest: Rebuild the manifest from existing captures
- check-connection: Verify the FTPS endpoint accepts our credentials
- clean: Remove the local output directory
"""

import asyncio
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from capturepipe import validate_dependencies
from capturepipe.config import DEFAULT_CONFIG_PATH, ConfigError, Settings, load_settings
from capturepipe.logging_config import configure_logging
from capturepipe.orchestrator.pipeline import PipelineRun, run_pipeline
from capturepipe.services.manifest_builder import build_manifest
from capturepipe.services.transfer_session import SessionEstablishmentError, TransferSession

app = typer.Typer(name="capturepipe", help="Synthetic video capture pipeline with FTPS delivery")
console = Console()

ConfigOption = typer.Option(
    DEFAULT_CONFIG_PATH, "--config", "-c", help="YAML or JSON configuration file"
)


def _load_or_exit(config_path: Path) -> Settings:
    """Load settings and configure logging, exiting 1 on configuration errors."""
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    configure_logging(settings.logging.level, settings.logging.rich)
    return settings


def _establish_or_exit(session: TransferSession, settings: Settings) -> None:
    try:
        session.establish(settings.transfer.max_retries, settings.transfer.retry_interval)
    except SessionEstablishmentError as e:
        console.print(f"[red]Error:[/red] Failed to establish FTPS connection: {e}")
        raise typer.Exit(code=1)


@app.command()
def run(
    config: Path = ConfigOption,
    fail_on_upload_error: bool = typer.Option(
        False, "--fail-on-upload-error", help="Exit 1 if any capture or manifest upload failed"
    ),
):
    """Run the full pipeline once.

    Generates the test video, extracts captures, builds the manifest and
    uploads captures and manifest to the configured FTPS server.
    """
    settings = _load_or_exit(config)

    # ffmpeg failures only degrade the run, so a missing binary is not fatal
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[yellow]Warning:[/yellow] {e}")

    console.print(f"[green]Output directory:[/green] {settings.storage.output_dir}")
    try:
        settings.storage.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to create output directory: {e}")
        raise typer.Exit(code=1)

    with TransferSession.from_config(settings.transfer) as session:
        _establish_or_exit(session, settings)

        try:
            with console.status("[bold green]Starting pipeline...") as status:
                def callback_wrapper(msg: str):
                    status.update(f"[bold green]{msg}")

                run_info = asyncio.run(
                    run_pipeline(settings, session, progress_callback=callback_wrapper)
                )
        except KeyboardInterrupt:
            console.print()
            console.print("[yellow]Pipeline interrupted.[/yellow]")
            raise typer.Exit(code=130)

    _print_summary(run_info)

    if fail_on_upload_error and run_info.failed_uploads:
        raise typer.Exit(code=1)
    console.print("[green]✓[/green] Program complete")


@app.command()
def manifest(config: Path = ConfigOption):
    """Rebuild the manifest from the captures already on disk."""
    settings = _load_or_exit(config)

    path = build_manifest(settings.storage.capture_dir, settings.storage.manifest_path)
    if path is None:
        console.print(f"[yellow]No captures found in {settings.storage.capture_dir}[/yellow]")
        return
    console.print(f"[green]Manifest:[/green] {path}")


@app.command(name="check-connection")
def check_connection(config: Path = ConfigOption):
    """Establish and close a session against the configured FTPS server."""
    settings = _load_or_exit(config)

    with TransferSession.from_config(settings.transfer) as session:
        _establish_or_exit(session, settings)
        console.print(
            f"[green]✓[/green] Connected to {session.address} "
            f"as {settings.transfer.username} (attempt {session.attempts_made})"
        )


@app.command()
def clean(
    config: Path = ConfigOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete the local output directory and everything in it."""
    settings = _load_or_exit(config)
    output_dir = settings.storage.output_dir

    if not output_dir.exists():
        console.print(f"[yellow]Nothing to clean:[/yellow] {output_dir} does not exist")
        return

    if not yes:
        typer.confirm(f"Remove {output_dir} and all of its contents?", abort=True)

    try:
        shutil.rmtree(output_dir)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to clean up output directory: {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]Removed[/green] {output_dir}")


def _print_summary(run_info: PipelineRun) -> None:
    """Render stage timings and upload results."""
    info_lines = [
        f"[bold]Test video:[/bold] {_status_text(run_info.synthesized)}",
        f"[bold]Captures:[/bold] {_status_text(run_info.extracted)}",
        f"[bold]Manifest:[/bold] {run_info.manifest_path or '[yellow]skipped[/yellow]'}",
        f"[bold]Duration:[/bold] {_format_duration(run_info.total_duration_seconds)}",
    ]
    console.print(Panel("\n".join(info_lines), title="[bold]Pipeline Run[/bold]", border_style="blue"))

    outcomes = run_info.upload_outcomes
    if not outcomes:
        console.print("[yellow]No uploads attempted[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("File")
    table.add_column("Remote Path", style="dim")
    table.add_column("Result")

    for outcome in outcomes:
        result = "[green]uploaded[/green]" if outcome.succeeded else f"[red]{outcome.reason}[/red]"
        table.add_row(outcome.local_path.name, outcome.remote_path, result)

    console.print(table)


def _status_text(ok: bool) -> str:
    return "[green]ok[/green]" if ok else "[red]failed[/red]"


def _format_duration(duration: float) -> str:
    if duration < 60:
        return f"{duration:.1f}s"
    mins = int(duration // 60)
    secs = duration % 60
    return f"{mins}m {secs:.1f}s"
