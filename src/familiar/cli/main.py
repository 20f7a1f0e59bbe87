"""CLI entry point for familiar."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from familiar.cli.output import EventPrinter, RichApprover
from familiar.core.config import config_path, load_config, save_config, save_me_md, set_value
from familiar.core.engine import Engine, Sink
from familiar.core.loop import Agent
from familiar.core.prompt import load_me_md
from familiar.errors import AgentBusyError, ConfigError, FamiliarError
from familiar.types.config import Config
from familiar.types.messages import AgentEvent, ErrorEvent

logger = logging.getLogger(__name__)

_SECRET_KEYS = {"api_key", "password", "elevenlabs_api_key", "tuya_api_key", "tuya_api_secret"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(ctx: click.Context) -> Config:
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _require_configured(config: Config) -> None:
    if not config.is_configured():
        raise click.ClickException(
            "No API key configured. Run `familiar config set api_key <KEY>` "
            "or set FAMILIAR_API_KEY."
        )


@click.group()
@click.option("--config", "config_file", type=click.Path(path_type=Path), default=None,
              help="Config file (default: ~/.familiar_ai/config.toml)")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """familiar -- an embodied AI companion.

    \b
    Usage:
      familiar chat
      familiar send "What do you see?"
      familiar dump-prompt
      familiar config set platform anthropic
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_file


# ----------------------------------------------------------------------
# Conversation
# ----------------------------------------------------------------------


@cli.command()
@click.option("--no-heartbeat", is_flag=True, help="Do not act on desires while idle")
@click.pass_context
def chat(ctx: click.Context, no_heartbeat: bool) -> None:
    """Interactive session. Ctrl-C interrupts the current turn."""
    config = _load(ctx)
    _require_configured(config)
    asyncio.run(_chat(config, heartbeat=not no_heartbeat))


async def _chat(config: Config, *, heartbeat: bool) -> None:
    console = Console(stderr=True)
    engine = Engine(config)
    printer = EventPrinter()
    approver = RichApprover(engine.permissions, console)
    approver.attach()
    if heartbeat:
        engine.start_heartbeat(printer)

    loop = asyncio.get_running_loop()
    console.print(
        f"[bold]{config.agent_name}[/bold] is listening "
        f"({config.platform}, {config.effective_model()}). /clear resets, /quit exits."
    )
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, lambda: input(f"\n{config.companion_name}> "))
            except (EOFError, KeyboardInterrupt):
                break
            line = line.strip()
            if not line:
                continue
            if line in ("/quit", "/exit"):
                break
            if line == "/clear":
                if engine.clear_history():
                    console.print("[dim]History cleared.[/dim]")
                else:
                    console.print("[yellow]Busy, try again in a moment.[/yellow]")
                continue
            await _dispatch_interruptible(engine, line, printer, console)
    finally:
        approver.detach()
        await engine.stop_heartbeat()


async def _dispatch_interruptible(
    engine: Engine, message: str, sink: Sink, console: Console,
) -> None:
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, engine.cancel)
    try:
        await engine.dispatch(message, sink)
    except AgentBusyError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
    finally:
        loop.remove_signal_handler(signal.SIGINT)


@cli.command()
@click.argument("message", nargs=-1, required=True)
@click.pass_context
def send(ctx: click.Context, message: tuple[str, ...]) -> None:
    """Send one MESSAGE and print the reply."""
    config = _load(ctx)
    _require_configured(config)
    failed = asyncio.run(_send(config, " ".join(message)))
    if failed:
        sys.exit(1)


async def _send(config: Config, message: str) -> bool:
    engine = Engine(config)
    printer = EventPrinter()
    failed = False

    def sink(event: AgentEvent) -> None:
        nonlocal failed
        failed = failed or isinstance(event, ErrorEvent)
        printer(event)

    approver = RichApprover(engine.permissions) if sys.stdin.isatty() else None
    if approver is not None:
        approver.attach()
    try:
        await _dispatch_interruptible(engine, message, sink, Console(stderr=True))
    finally:
        if approver is not None:
            approver.detach()
    return failed


@cli.command("dump-prompt")
@click.pass_context
def dump_prompt(ctx: click.Context) -> None:
    """Print the system prompt the next turn would use."""
    config = _load(ctx)
    click.echo(Agent(config).dump_system_prompt())


# ----------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------


@cli.group("config")
def config_cmd() -> None:
    """View or change settings."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration (secrets masked)."""
    config = _load(ctx)
    table = Table(title=str(ctx.obj["config_path"] or config_path()), show_header=False)
    table.add_column("key", style="bold")
    table.add_column("value")
    for key, value in config.to_dict().items():
        if isinstance(value, dict):
            for sub, sub_value in value.items():
                table.add_row(f"{key}.{sub}", _display(sub, sub_value))
        else:
            table.add_row(key, _display(key, value))
    table.add_row("model (effective)", config.effective_model())
    Console().print(table)


def _display(key: str, value: object) -> str:
    if key in _SECRET_KEYS and value:
        text = str(value)
        return f"{text[:4]}…" if len(text) > 8 else "****"
    return str(value)


@config_cmd.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set KEY (e.g. platform, camera.host, coding.rules) to VALUE."""
    path = ctx.obj["config_path"]
    try:
        config = load_config(path, env_overrides=False)
        set_value(config, key, value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    written = save_config(config, path)
    click.echo(f"Set {key} in {written}")


@config_cmd.command("persona")
@click.argument("text", required=False)
def config_persona(text: str | None) -> None:
    """Show the ME.md persona, or replace it with TEXT."""
    if text is None:
        click.echo(load_me_md() or "(no ME.md; using the persona from config)")
        return
    click.echo(f"Wrote {save_me_md(text)}")


def main() -> None:
    """Entry point."""
    try:
        cli()
    except FamiliarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
