"""Command-line interface for the CodeCritic gateway."""

import asyncio
import sys
import time
import uuid
from pathlib import Path
from typing import Optional

import click
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from config.settings import settings
from models.data_models import ChunkFrame, CompleteFrame, ErrorFrame, RequestContext
from services.generation_client import GenerationClient, create_backend
from services.interaction_recorder import InteractionRecorder
from services.stream_relay import StreamRelay
from storage.interaction_store import InteractionStore
from tools.error_handling import UpstreamError, ValidationError, validate_prompt
from tools.observability import setup_observability

console = Console()


def build_services(database_path: Optional[str] = None):
    """
    Build the client and recorder used by local commands.

    Returns:
        Tuple of (GenerationClient, InteractionRecorder)
    """
    observability = setup_observability(log_level="WARNING")
    store = InteractionStore(database_path or settings.database_path)
    recorder = InteractionRecorder(store, logger=observability.get_logger("recorder"))
    client = GenerationClient(create_backend(settings), logger=observability.get_logger("generation"))
    return client, recorder


def load_code(file: str) -> str:
    """
    Read a source file and check it is reviewable.

    Raises:
        click.ClickException: If the file is empty or unreadable
    """
    try:
        code = Path(file).read_text(encoding="utf-8")
        return validate_prompt(code)
    except ValidationError:
        raise click.ClickException(f"Nothing to review: {file} is empty")
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Error reading {file}: {e}")


async def _stream_review(relay: StreamRelay) -> None:
    async for frame in relay.frames():
        if isinstance(frame, ChunkFrame):
            console.print(frame.text, end="", markup=False, highlight=False)
        elif isinstance(frame, ErrorFrame) and not frame.fatal:
            console.print(f"\n[yellow]Warning:[/yellow] {frame.message}")
        elif isinstance(frame, CompleteFrame):
            saved = "saved" if frame.persisted else f"not saved ({frame.persist_error})"
            console.print(
                f"\n\n[dim]{frame.chunk_count} chunks, {frame.total_length} chars, "
                f"{frame.response_time_ms} ms, {saved}[/dim]"
            )


async def _single_shot_review(
    client: GenerationClient,
    recorder: InteractionRecorder,
    context: RequestContext
) -> None:
    response = await client.generate(context.prompt)
    response_time = max(0, int((time.monotonic() - context.started_at) * 1000))
    outcome = await recorder.record(recorder.build_record(context, response, response_time))

    console.print(Panel(Markdown(response), title="Review", border_style="cyan"))
    if not outcome.persisted:
        console.print(f"[yellow]Interaction not saved:[/yellow] {outcome.error}")


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """
    CodeCritic Gateway CLI.

    Serves the review gateway and runs reviews against the configured model
    provider from the terminal.

    \b
    Examples:
        # Start the HTTP gateway
        code-critic serve

        # Review a file, streaming the answer
        code-critic review app.py --stream

        # Show usage statistics
        code-critic stats
    """
    pass


@main.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", type=int, default=None, help="Bind port (default: API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Run the HTTP gateway."""
    uvicorn.run(
        "api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower()
    )


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--stream", is_flag=True, help="Print the review as it is generated")
@click.option("--session-id", default=None, help="Session identifier to record with the review")
@click.option("--db", "database_path", default=None, help="Interaction database (default: DATABASE_PATH)")
def review(file: str, stream: bool, session_id: Optional[str], database_path: Optional[str]) -> None:
    """
    Review a source file.

    The interaction is recorded in the local database exactly as a request
    to the gateway would be.
    """
    code = load_code(file)

    try:
        client, recorder = build_services(database_path)
    except (RuntimeError, ValueError, ImportError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    context = RequestContext(
        request_id=str(uuid.uuid4()),
        session_id=session_id or str(uuid.uuid4()),
        prompt=code,
        user_ip="cli",
        user_agent="code-critic-cli/0.1.0",
        started_at=time.monotonic()
    )

    console.print(f"[bold cyan]Reviewing[/bold cyan] {file} [dim]({client.provider})[/dim]\n")

    try:
        if stream:
            asyncio.run(_stream_review(StreamRelay(client, recorder, context)))
        else:
            with console.status("[cyan]Waiting for review...", spinner="dots"):
                asyncio.run(_single_shot_review(client, recorder, context))
    except UpstreamError as e:
        console.print(f"\n[bold red]Generation failed:[/bold red] {e}")
        sys.exit(1)


@main.command()
@click.option("--db", "database_path", default=None, help="Interaction database (default: DATABASE_PATH)")
def stats(database_path: Optional[str]) -> None:
    """Show interaction statistics."""
    try:
        store = InteractionStore(database_path or settings.database_path)
        summary = store.get_stats()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print("\n[bold cyan]Interaction Statistics[/bold cyan]\n")
    console.print(f"Total interactions: [bold]{summary.total_interactions}[/bold]")
    console.print(f"Unique users: [bold]{summary.unique_users}[/bold]")
    console.print(f"Today: [bold]{summary.today_interactions}[/bold]")
    console.print(f"Average response time: [bold]{summary.average_response_time:.0f} ms[/bold]\n")

    if not summary.language_stats:
        console.print("[yellow]No interactions recorded yet[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Language", style="cyan")
    table.add_column("Count", justify="right")
    for entry in summary.language_stats:
        table.add_row(entry.language, str(entry.count))
    console.print(table)


@main.command()
@click.option("--ip", default=None, help="Only show interactions from this address")
@click.option("--limit", type=int, default=20, help="Maximum number of interactions to display (default: 20)")
@click.option("--db", "database_path", default=None, help="Interaction database (default: DATABASE_PATH)")
def history(ip: Optional[str], limit: int, database_path: Optional[str]) -> None:
    """Show the most recent interactions, newest first."""
    try:
        store = InteractionStore(database_path or settings.database_path)
        if ip:
            interactions, total = store.list_by_ip(ip, page=1, limit=limit)
        else:
            interactions, total = store.list_recent(page=1, limit=limit)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    if not interactions:
        console.print("[yellow]No interactions found[/yellow]")
        return

    console.print(f"\n[bold cyan]Recent Interactions[/bold cyan]")
    console.print(f"[dim]Showing {len(interactions)} of {total}[/dim]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Date", style="dim")
    table.add_column("Address", style="blue")
    table.add_column("Language", style="cyan")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Code", style="white")

    for interaction in interactions:
        snippet = " ".join(interaction.user_code.split())
        if len(snippet) > 40:
            snippet = snippet[:37] + "..."
        table.add_row(
            str(interaction.id),
            interaction.timestamp.strftime('%Y-%m-%d %H:%M'),
            interaction.user_ip,
            interaction.code_language,
            str(interaction.response_time),
            snippet
        )

    console.print(table)


if __name__ == "__main__":
    main()
