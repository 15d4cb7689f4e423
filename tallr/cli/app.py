"""Command-line interface for Tallr."""

import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tallr.auth.token import TokenManager
from tallr.cli.api_client import APIError, TallrClient
from tallr.core.aggregate import compute_aggregate_state
from tallr.core.config import GlobalConfig, load_config
from tallr.core.errors import DataDirectoryError, TokenResolutionError
from tallr.core.logging_setup import configure_logging
from tallr.core.port_utils import check_port_availability, is_loopback_host, validate_port_range
from tallr.core.setup_status import get_setup_status, mark_setup_completed
from tallr.core.state_store import StateStore
from tallr.persistence.state_file import StateFile
from tallr.tasks.cleanup_sweep import run_startup_cleanup

app = typer.Typer(
    name="tallr",
    help="Track the live status of AI coding-agent sessions",
    add_completion=False,
)
console = Console()

STATE_STYLES = {
    "ERROR": "red",
    "PENDING": "yellow",
    "WORKING": "cyan",
    "IDLE": "dim",
    "DONE": "green",
}


def _config(data_dir: Optional[Path]) -> GlobalConfig:
    config = load_config()
    if data_dir is not None:
        config.data_dir = data_dir
    try:
        config.resolve_data_dir()
    except DataDirectoryError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return config


DataDirOption = typer.Option(None, "--data-dir", help="Override the Tallr data directory")


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to run the gateway on"),
    host: Optional[str] = typer.Option(None, "--host", help="Loopback address to bind to"),
    debug: bool = typer.Option(False, "--debug", help="Enable /v1/debug routes and tracing"),
    data_dir: Optional[Path] = DataDirOption,
):
    """Start the Tallr gateway.

    Examples:

      tallr serve

      tallr serve --port 4318 --debug
    """
    from tallr.ui.server import run_server

    config = _config(data_dir)
    host = host or config.host
    port = port or config.port
    if debug:
        config.debug = True

    if not is_loopback_host(host):
        console.print(f"[red]Error:[/red] Tallr only listens on loopback addresses, got {host}")
        raise typer.Exit(1)

    valid, msg = validate_port_range(port)
    if not valid:
        console.print(f"[red]Error:[/red] {msg}")
        raise typer.Exit(1)

    available, msg = check_port_availability(port, host)
    if not available:
        console.print(f"[red]Error:[/red] {msg}")
        raise typer.Exit(1)

    configure_logging(config)
    console.print("Starting Tallr gateway...")
    console.print(f"   URL: [bold cyan]http://{host}:{port}/v1[/bold cyan]")
    console.print("   Press [bold]Ctrl+C[/bold] to stop\n")

    try:
        run_server(host=host, port=port, config=config)
    except KeyboardInterrupt:
        console.print("\nGateway stopped")


@app.command()
def token(data_dir: Optional[Path] = DataDirOption):
    """Print the shared secret the CLI wrapper must send."""
    config = _config(data_dir)
    try:
        value = TokenManager(config.token_file).get_or_create_token()
    except TokenResolutionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    typer.echo(value)


@app.command()
def status(data_dir: Optional[Path] = DataDirOption):
    """Show tracked tasks from the saved state file."""
    config = _config(data_dir)
    state = StateFile(config.sessions_file).load_or_empty()

    if not state.tasks:
        console.print("No tracked tasks")
        return

    table = Table(title="Tallr tasks")
    table.add_column("Project")
    table.add_column("Agent")
    table.add_column("Title")
    table.add_column("State")
    table.add_column("Pinned", justify="center")

    for task in sorted(state.tasks.values(), key=lambda t: t.updated_at, reverse=True):
        project = state.projects.get(task.project_id)
        style = STATE_STYLES.get(task.state, "white")
        table.add_row(
            project.name if project else task.project_id,
            task.agent,
            task.title,
            f"[{style}]{task.state}[/{style}]",
            "yes" if task.pinned else "",
        )

    console.print(table)
    aggregate = compute_aggregate_state(state.tasks.values())
    console.print(f"Aggregate state: [bold]{aggregate.value}[/bold]")


@app.command()
def cleanup(data_dir: Optional[Path] = DataDirOption):
    """Remove finished and stale tasks from the saved state file.

    Run this while the gateway is stopped; a running gateway sweeps on its own.
    """
    config = _config(data_dir)
    state_file = StateFile(config.sessions_file)
    store = StateStore()
    store.load(state_file.load_or_empty())

    removed = run_startup_cleanup(store, state_file, config)
    console.print(f"Removed {len(removed)} task(s)")


@app.command("setup-status")
def setup_status_command(data_dir: Optional[Path] = DataDirOption):
    """Show first-launch and CLI installation flags."""
    config = _config(data_dir)
    result = get_setup_status(config)
    console.print(f"First launch:    {result.is_first_launch}")
    console.print(f"CLI installed:   {result.cli_installed}")
    console.print(f"Setup completed: {result.setup_completed}")


@app.command("setup-complete")
def setup_complete(data_dir: Optional[Path] = DataDirOption):
    """Mark first-run setup as completed."""
    config = _config(data_dir)
    try:
        mark_setup_completed(config)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to create setup flag: {e}")
        raise typer.Exit(1)
    console.print("Setup marked as completed")


@app.command()
def report(
    state: str = typer.Argument(..., help="Task state (IDLE, WORKING, PENDING, ERROR, DONE)"),
    title: str = typer.Option("Agent session", "--title", help="Task title"),
    agent: str = typer.Option("claude", "--agent", help="Agent label"),
    task_id: Optional[str] = typer.Option(None, "--task-id", help="Task id (new one if omitted)"),
    repo: Path = typer.Option(Path("."), "--repo", help="Repository path of the project"),
    name: Optional[str] = typer.Option(None, "--name", help="Project name (repo folder name)"),
    details: Optional[str] = typer.Option(None, "--details", help="Free-text details"),
    url: Optional[str] = typer.Option(None, "--url", help="Gateway URL"),
    data_dir: Optional[Path] = DataDirOption,
):
    """Report a task state to a running gateway."""
    repo_path = repo.expanduser().resolve()
    task_id = task_id or str(uuid.uuid4())

    client = TallrClient(base_url=url)
    if not client.token:
        config = _config(data_dir)
        try:
            client.token = TokenManager(config.token_file).get_or_create_token()
        except TokenResolutionError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    try:
        client.upsert(
            project={"name": name or repo_path.name, "repoPath": str(repo_path)},
            task={
                "id": task_id,
                "agent": agent,
                "title": title,
                "state": state,
                "details": details,
            },
        )
    except APIError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"Reported [bold]{state}[/bold] for task {task_id}")


@app.command()
def version():
    """Show Tallr version."""
    from tallr import __version__

    console.print(f"Tallr version: [bold green]{__version__}[/bold green]")


if __name__ == "__main__":
    app()
