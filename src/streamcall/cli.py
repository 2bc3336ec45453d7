"""Command-line chat front end for streamcall."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from streamcall import __version__
from streamcall.config import StreamConfig, load_config
from streamcall.core.manager import SessionManager
from streamcall.errors import StreamCallError
from streamcall.events.bus import WILDCARD, EventBus
from streamcall.stream.transport import HttpxTransport
from streamcall.tools.http_executor import HttpToolExecutor
from streamcall.tools.registry import ToolRegistry
from streamcall.types import AgentEvent, SessionState, ToolCall

console = Console()

_HISTORY_PATH = Path(os.path.expanduser("~/.config/streamcall/history"))


class StreamingDisplay:
    """Output sink that renders an exchange to the terminal as it arrives."""

    def __init__(self, con: Console) -> None:
        self.con = con
        self._streaming = False

    def on_text(self, text: str) -> None:
        if not self._streaming:
            self._streaming = True
            self.con.print()
        self.con.print(text, end="", highlight=False)

    def on_tool_call(self, call: ToolCall) -> None:
        self._flush()
        args = str(call.arguments)
        if len(args) > 120:
            args = args[:120] + "..."
        self.con.print(f"[yellow]> {call.function}[/yellow] [dim]{args}[/dim]")

    def on_tool_result(self, name: str, payload: str) -> None:
        out = payload if len(payload) <= 600 else payload[:600] + "\n..."
        if out.strip():
            self.con.print(Panel(out, title=name, border_style="dim", expand=False))

    def on_complete(self) -> None:
        self._flush()

    def on_error(self, reason: str) -> None:
        self._flush()
        self.con.print(f"[red]Error: {reason}[/red]")

    def _flush(self) -> None:
        if self._streaming:
            self.con.print()
            self._streaming = False


def build_registry(config: StreamConfig) -> tuple[ToolRegistry, HttpToolExecutor | None]:
    """Registry of configured tools, forwarding to the tool server if set."""
    remote = HttpToolExecutor(config.tool_server) if config.tool_server.url else None
    registry = ToolRegistry(remote=remote)
    for descriptor in config.tools:
        registry.declare(descriptor)
    return registry, remote


def _trace(event: AgentEvent) -> None:
    """Print one lifecycle event in the --verbose trace."""
    details = " ".join(
        f"{key}={value}" for key, value in event.data.items() if key != "session_id"
    )
    console.print(f"[dim]· {event.type.value} {escape(details)}[/dim]", highlight=False)


async def _chat(config: StreamConfig, prompt_text: str | None, verbose: bool = False) -> None:
    registry, remote = build_registry(config)
    transport = HttpxTransport(config.endpoint)
    bus = EventBus() if verbose else None
    manager = SessionManager(config, transport, registry, event_bus=bus)
    display = StreamingDisplay(console)

    def _open() -> str:
        sid = manager.open_session()
        if bus is not None:
            bus.subscribe(WILDCARD, _trace, session_id=sid)
        return sid

    session_id = _open()

    async def _exchange(text: str) -> SessionState:
        start = time.monotonic()
        try:
            state = await manager.send_prompt(session_id, text, display)
        except StreamCallError as e:
            console.print(f"[red]{e}[/red]")
            return SessionState.ERRORED
        console.print(f"\n[dim]({time.monotonic() - start:.1f}s, {state.value})[/dim]\n")
        return state

    try:
        if prompt_text:
            await _exchange(prompt_text)
            return

        _HISTORY_PATH.parent.mkdir(parents=True, exist_ok=True)
        session = PromptSession(history=FileHistory(str(_HISTORY_PATH)))
        while True:
            try:
                user_input = (await session.prompt_async(HTML("<ansigreen><b>❯ </b></ansigreen>"))).strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\n[dim]Goodbye![/dim]")
                break

            if not user_input:
                continue
            if user_input == "/quit":
                console.print("[dim]Goodbye![/dim]")
                break
            if user_input == "/reset":
                await manager.close(session_id)
                session_id = _open()
                console.print("[dim]Started a new session.[/dim]")
                continue

            await _exchange(user_input)
    finally:
        await manager.aclose()
        await transport.aclose()
        if remote is not None:
            await remote.aclose()


@click.group()
@click.version_option(__version__, prog_name="streamcall")
def main() -> None:
    """streamcall - streaming tool-call chat for OpenAI-compatible endpoints."""


@main.command()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to streamcall.yaml (auto-detected from CWD or ~/.config/streamcall/)")
@click.option("--prompt", "-p", "prompt_text", default=None,
              help="Send a single prompt and exit")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging and a trace of session events")
def chat(config_path: str | None, prompt_text: str | None, verbose: bool) -> None:
    """Chat with the configured endpoint, executing tool calls as they arrive."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config = load_config(config_path)
    except StreamCallError as e:
        raise click.ClickException(str(e)) from e

    console.print(
        f"[dim]Model: {config.endpoint.model} @ {config.endpoint.url}[/dim]"
    )
    if config.tools:
        names = ", ".join(t.name for t in config.tools)
        console.print(f"[dim]Tools ({len(config.tools)}): {names}[/dim]")
    if not prompt_text:
        console.print("[dim]Type /reset for a new session, /quit to leave[/dim]\n")

    asyncio.run(_chat(config, prompt_text, verbose))


@main.command()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to streamcall.yaml")
def tools(config_path: str | None) -> None:
    """List the configured tools."""
    try:
        config = load_config(config_path)
    except StreamCallError as e:
        raise click.ClickException(str(e)) from e

    if not config.tools:
        console.print("[dim]No tools configured.[/dim]")
        return

    table = Table(title="Tools")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Parameters", style="dim")
    for descriptor in config.tools:
        params = ", ".join(descriptor.parameters.get("properties", {}))
        table.add_row(descriptor.name, descriptor.description, params or "-")
    console.print(table)


if __name__ == "__main__":
    main()
