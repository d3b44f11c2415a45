"""tgclaude CLI: Telegram to Claude agent bridge.

Usage:
    tgclaude run                 Run the bridge until interrupted
    tgclaude session list        List stored conversation sessions
    tgclaude session show <id>   Show one session
    tgclaude session reset <id>  Drop a session (next message starts fresh)
    tgclaude config show         Show resolved configuration
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.cli.config import TgClaudeConfig, load_config
from src.cli.logging_setup import setup_logging
from src.cli.runner import BridgeRunner, open_session_store
from src.errors import BridgeError
from src.orchestrator.context_policy import classify

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="tgclaude",
    help="Telegram to Claude agent bridge",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
session_app = typer.Typer(help="Inspect and reset conversation sessions")

app.add_typer(config_app, name="config")
app.add_typer(session_app, name="session")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to tgclaude.yaml config file"
    ),
):
    """tgclaude: chat with a Claude agent from Telegram."""
    global _config_path
    _config_path = config


def _load() -> TgClaudeConfig:
    try:
        return load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except BridgeError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)


def _mask(secret: str) -> str:
    if not secret:
        return "[dim](not set)[/dim]"
    return "***" + secret[-4:] if len(secret) > 8 else "***"


# --- Version ---


@app.command()
def version():
    """Show tgclaude version and dependency info."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("tgclaude")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]tgclaude[/bold] v{v}")
    try:
        sdk_version = pkg_version("claude-agent-sdk")
    except PackageNotFoundError:
        sdk_version = "[red]not installed[/red]"
    console.print(f"  Agent SDK: {sdk_version}")


# --- Run ---


@app.command()
def run():
    """Run the bridge until SIGINT/SIGTERM."""
    cfg = _load()
    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)
    try:
        cfg.require_bot_credentials()
    except BridgeError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    async def _run() -> None:
        async with BridgeRunner(cfg) as runner:
            await runner.run_until_stopped()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        _log.info("Interrupted")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    cfg = _load()

    console.print("[bold]Telegram:[/bold]")
    console.print(f"  bot_token: {_mask(cfg.telegram.bot_token)}")
    console.print(f"  user_id: {cfg.telegram.user_id}")
    console.print(f"  api_base: {cfg.telegram.api_base}")

    console.print("\n[bold]Workspace:[/bold]")
    console.print(f"  path: {cfg.workspace.path}")
    console.print(f"  database: {cfg.database.url or cfg.database_path}")
    console.print(f"  task inbox: {cfg.task_inbox_dir}")

    console.print("\n[bold]Agent:[/bold]")
    console.print(f"  model: {cfg.agent.model or '(SDK default)'}")
    console.print(f"  max_turns: {cfg.agent.max_turns}")
    console.print(f"  permission_mode: {cfg.agent.permission_mode}")
    console.print(f"  context_window: {cfg.agent.context_window:,}")
    timeout = cfg.agent.exchange_timeout_seconds
    console.print(f"  exchange_timeout: {f'{timeout:g}s' if timeout else 'none'}")
    console.print(f"  soul: {cfg.agent.soul_path or '(none)'}")

    console.print("\n[bold]Voice:[/bold]")
    console.print(f"  whisper: {cfg.voice.whisper_url}")
    console.print(f"  chatterbox: {cfg.voice.chatterbox_url} ({cfg.voice.voice_name})")


# --- Session commands ---


@session_app.command("list")
def session_list():
    """List stored sessions, most recently active first."""
    cfg = _load()

    async def _list():
        async with open_session_store(cfg) as store:
            return await store.list_all()

    records = asyncio.run(_list())
    if not records:
        console.print("[dim]No sessions stored.[/dim]")
        return

    table = Table(title="Conversation Sessions")
    table.add_column("Conversation", style="cyan")
    table.add_column("Agent Session")
    table.add_column("Context", justify="right")
    table.add_column("State")
    table.add_column("Last Active", style="dim")
    for r in records:
        table.add_row(
            r.conversation_id,
            r.agent_session_id or "[dim](unbound)[/dim]",
            f"{r.context_usage_percent:.1f}%",
            classify(r.context_usage_percent).value,
            r.last_active_at,
        )
    console.print(table)


@session_app.command("show")
def session_show(
    conversation_id: str = typer.Argument(..., help="Conversation (chat) id"),
):
    """Show one stored session."""
    cfg = _load()

    async def _get():
        async with open_session_store(cfg) as store:
            return await store.get(conversation_id)

    record = asyncio.run(_get())
    if record is None:
        console.print(f"[yellow]No session for conversation {conversation_id}.[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]Conversation {record.conversation_id}[/bold]")
    console.print(f"  agent session: {record.agent_session_id or '(unbound)'}")
    console.print(f"  working context: {record.working_context}")
    if record.project_path:
        console.print(f"  project: {record.project_path}")
    console.print(
        f"  context usage: {record.context_usage_percent:.1f}% "
        f"({classify(record.context_usage_percent).value})"
    )
    console.print(f"  last active: {record.last_active_at}")


@session_app.command("reset")
def session_reset(
    conversation_id: str = typer.Argument(..., help="Conversation (chat) id"),
):
    """Drop a session. The next message starts a fresh agent session."""
    cfg = _load()

    async def _reset():
        async with open_session_store(cfg) as store:
            await store.delete(conversation_id)

    asyncio.run(_reset())
    console.print(f"[green]Session cleared for conversation {conversation_id}.[/green]")
