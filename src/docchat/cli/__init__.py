"""
docchat CLI - hold a document conversation from the terminal.

Conversation state is kept in a local session directory, so a conversation
started by one command can be continued and ended by later ones.

Usage:
    docchat --help
    docchat start report.pdf notes.txt -m "Summarize these documents"
    docchat send "What does the second document say about costs?"
    docchat status
    docchat end
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from dotenv import load_dotenv
from pydantic import ValidationError as SettingsValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import load_settings
from ..models import MessageRole, TurnResult
from ..orchestration import ConversationOrchestrator
from ..service import ConnectionCache
from ..session import FileSessionStore
from ..utils import init_logging

DEFAULT_STATE_DIR = "~/.docchat/sessions"
DEFAULT_SESSION = "default"
DEFAULT_MESSAGE = "Analyze my documents and summarize the key points"

console = Console()

_ROLE_STYLES = {
    MessageRole.USER: ("You", "cyan"),
    MessageRole.ASSISTANT: ("Assistant", "green"),
    MessageRole.SYSTEM: ("System", "yellow"),
}


class CliContext:
    """Options shared by every command."""

    def __init__(self, session_id: str, state_dir: str, config_path: Optional[str]):
        self.session_id = session_id
        self.state_dir = Path(state_dir).expanduser()
        self.config_path = config_path

    def session(self):
        return FileSessionStore(self.state_dir).session(self.session_id)

    def orchestrator(self) -> ConversationOrchestrator:
        try:
            settings = load_settings(self.config_path)
        except (ValueError, SettingsValidationError, OSError) as e:
            click.echo(f"Error: invalid configuration: {e}", err=True)
            sys.exit(2)
        return ConversationOrchestrator(settings, ConnectionCache(settings))


async def _with_orchestrator(ctx: CliContext, operation):
    orchestrator = ctx.orchestrator()
    session = ctx.session()
    try:
        return await operation(orchestrator, session)
    finally:
        # Detached work must finish before the process exits
        await orchestrator.drain(session)
        await orchestrator.shutdown()
        await orchestrator.connections.close()


def _print_result(result: TurnResult) -> None:
    if result.uploaded_documents:
        table = Table(title="Uploaded documents")
        table.add_column("File")
        table.add_column("Remote ID")
        for document in result.uploaded_documents:
            table.add_row(document.filename, document.file_id)
        console.print(table)

    for record in result.messages:
        label, style = _ROLE_STYLES[record.role]
        console.print(Panel(record.content or "(empty)", title=label, title_align="left", border_style=style))

    if not result.success:
        sys.exit(1)


@click.group()
@click.version_option(package_name="docchat")
@click.option("--session", "session_id", default=DEFAULT_SESSION, show_default=True,
              help="Name of the conversation session")
@click.option("--state-dir", default=DEFAULT_STATE_DIR, show_default=True,
              help="Directory holding session state")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="YAML settings file (overrides DOCCHAT_* environment variables)")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.pass_context
def main(ctx, session_id: str, state_dir: str, config_path: Optional[str], verbose: bool, json_logs: bool):
    """docchat - converse with an AI agent about your documents."""
    load_dotenv()
    init_logging(level=logging.DEBUG if verbose else logging.WARNING, json_format=json_logs)
    ctx.obj = CliContext(session_id, state_dir, config_path)


@main.command()
@click.argument("paths", nargs=-1, type=click.Path())
@click.option("-m", "--message", default=DEFAULT_MESSAGE, show_default=True,
              help="First message of the conversation")
@click.pass_obj
def start(ctx: CliContext, paths: Tuple[str, ...], message: str):
    """Upload PATHS and start a new conversation.

    \b
    Examples:
        docchat start statement.pdf budget.xlsx -m "Am I on track to retire at 60?"
    """
    result = asyncio.run(_with_orchestrator(
        ctx, lambda orch, session: orch.run_conversation(session, message, list(paths), is_new_conversation=True)
    ))
    _print_result(result)


@main.command()
@click.argument("message")
@click.pass_obj
def send(ctx: CliContext, message: str):
    """Send MESSAGE to the active conversation."""
    result = asyncio.run(_with_orchestrator(
        ctx, lambda orch, session: orch.run_conversation(session, message, is_new_conversation=False)
    ))
    _print_result(result)


@main.command()
@click.pass_obj
def end(ctx: CliContext):
    """End the conversation and delete its remote documents, index and thread."""
    result = asyncio.run(_with_orchestrator(ctx, lambda orch, session: orch.end_conversation(session)))
    if result.success:
        click.echo(result.message)
    else:
        click.echo(f"Error: {result.message}", err=True)
        sys.exit(1)


@main.command()
@click.pass_obj
def status(ctx: CliContext):
    """Show the session's conversation state."""
    from ..session import ResourceTracker

    conversation = asyncio.run(ResourceTracker(ctx.session()).load())
    click.echo(f"Session:       {ctx.session_id}")
    click.echo(f"Active:        {'yes' if conversation.is_active else 'no'}")
    click.echo(f"Thread:        {conversation.thread_id or '-'}")
    click.echo(f"Files:         {', '.join(conversation.file_ids) or '-'}")
    click.echo(f"Vector stores: {', '.join(conversation.vector_store_ids) or '-'}")


if __name__ == "__main__":
    main()
