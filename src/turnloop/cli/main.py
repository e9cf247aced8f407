"""turnloop CLI implementation.

Provides a terminal front end for the streaming tool loop: one-shot
questions, an interactive chat, router inspection and secret management.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.status import Status
from rich.table import Table
from rich.text import Text

from turnloop.config import CLIOverrides, ConfigLoader, FileConfig
from turnloop.exceptions import TurnloopError
from turnloop.markers import extract_weather, parse_content
from turnloop.models.config import ModelTier
from turnloop.models.tools import WeatherData
from turnloop.orchestrator import (
    ChatSession,
    TurnObserver,
    TurnOrchestrator,
    build_system_prompt,
)
from turnloop.persistence import JsonConversationStore
from turnloop.providers import AnthropicTransport
from turnloop.router import Classification, TierRouter
from turnloop.secrets_store import KNOWN_SECRETS, FileSecretStore, env_var_for
from turnloop.tools import ToolContext, ToolDispatcher, ToolRegistry

DEFAULT_SESSION = "default"
EXIT_WORDS = {"exit", "quit", ":q"}

app = typer.Typer(
    name="turnloop",
    help="Streaming chat with automatic model routing and built-in tools.",
    no_args_is_help=True,
)
sessions_app = typer.Typer(help="Inspect, grade and manage stored chat sessions.", no_args_is_help=True)
app.add_typer(sessions_app, name="sessions")
secrets_app = typer.Typer(help="Manage stored API keys.", no_args_is_help=True)
app.add_typer(secrets_app, name="secrets")

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to turnloop.yaml configuration file."),
]
SessionOption = Annotated[
    str,
    typer.Option("--session", "-s", help="Session id to read and append to."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging."),
]
SessionArgument = Annotated[str, typer.Argument(help="Session id.")]
GradeValue = Annotated[int, typer.Argument(min=0, max=5, help="Value from 0 to 5.")]


def _setup_logging(verbose: bool) -> None:
    """Route library logs through rich; WARNING unless verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_config(config_file: Path | None) -> FileConfig | None:
    try:
        return ConfigLoader.load_config(config_file)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


@dataclass
class Runtime:
    """Wired collaborators for one CLI invocation."""

    file_config: FileConfig | None
    secrets: FileSecretStore
    transport: AnthropicTransport
    router: TierRouter
    dispatcher: ToolDispatcher
    orchestrator: TurnOrchestrator
    store: JsonConversationStore
    system_prompt: str

    def session(self, session_id: str) -> ChatSession:
        return ChatSession(session_id, self.orchestrator, self.store, self.system_prompt)


@asynccontextmanager
async def _runtime(
    file_config: FileConfig | None,
    overrides: CLIOverrides | None = None,
    *,
    max_iterations: int | None = None,
    parallel_tools: bool | None = None,
) -> AsyncIterator[Runtime]:
    """Build the transport, router, tools and store, and close them afterwards."""
    provider_config = ConfigLoader.resolve_provider_config(file_config, overrides)
    policy = ConfigLoader.resolve_routing_policy(file_config, overrides)
    orchestrator_config = ConfigLoader.resolve_orchestrator_config(
        file_config,
        cli_max_iterations=max_iterations,
        cli_parallel_tools=parallel_tools,
    )
    tool_settings = ConfigLoader.resolve_tool_settings(file_config)
    storage = ConfigLoader.resolve_storage_config(file_config)
    catalog = ConfigLoader.build_catalog(file_config)
    secrets = FileSecretStore(storage.secrets_path)

    async with httpx.AsyncClient(follow_redirects=True) as http_client:
        transport = AnthropicTransport(provider_config, secrets, client=http_client)
        router = TierRouter(transport, policy)
        dispatcher = ToolDispatcher(
            ToolContext(
                transport=transport,
                http_client=http_client,
                secrets=secrets,
                catalog=catalog,
                settings=tool_settings,
            )
        )
        system_prompt = build_system_prompt(
            orchestrator_config.system_prompt,
            catalog=catalog,
            user_name=orchestrator_config.user_name,
            location=tool_settings.default_location,
            timezone=tool_settings.timezone,
        )
        yield Runtime(
            file_config=file_config,
            secrets=secrets,
            transport=transport,
            router=router,
            dispatcher=dispatcher,
            orchestrator=TurnOrchestrator(transport, router, dispatcher, orchestrator_config),
            store=JsonConversationStore(storage.sessions_path),
            system_prompt=system_prompt,
        )


class ConsoleObserver(TurnObserver):
    """Streams text to the console and shows a spinner while tools run."""

    def __init__(self, show_routing: bool = False) -> None:
        self._show_routing = show_routing
        self._status: Status | None = None

    def on_routed(self, classification: Classification | None, tier: ModelTier) -> None:
        if not self._show_routing:
            return
        if classification is None:
            console.print(f"[dim]{tier.display_name} (forced)[/dim]")
        else:
            confidence = classification.response.confidence
            console.print(f"[dim]{tier.display_name} (confidence {confidence:.2f})[/dim]")

    def on_text(self, text: str) -> None:
        console.print(text, end="", markup=False, highlight=False)

    def on_tool_start(self, name: str, label: str) -> None:
        self._stop_status()
        self._status = console.status(f"[cyan]{label}...[/cyan]")
        self._status.start()

    def on_tool_end(self, name: str) -> None:
        self._stop_status()

    def _stop_status(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


def _weather_table(weather: WeatherData) -> Table:
    """Render a weather marker payload as a small card."""
    table = Table(title=f"Weather: {weather.city}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Conditions", weather.conditions)
    table.add_row("Temperature", f"{weather.temp:.0f}°F (feels like {weather.feels_like:.0f}°F)")
    if weather.high is not None and weather.low is not None:
        table.add_row("High / Low", f"{weather.high:.0f}°F / {weather.low:.0f}°F")
    table.add_row("Humidity", f"{weather.humidity}%")
    table.add_row("Wind", f"{weather.wind_speed:.0f} mph")
    if weather.hourly_forecast:
        hourly = ", ".join(
            f"{entry.hour} {entry.temp:.0f}°F {entry.conditions} ({entry.pop:.0%})"
            for entry in weather.hourly_forecast
        )
        table.add_row("Hourly", hourly)
    return table


async def _submit(session: ChatSession, message: str, show_routing: bool) -> None:
    observer = ConsoleObserver(show_routing=show_routing)
    reply = await session.submit(message, observer=observer)
    if reply.is_local:
        console.print(Markdown(reply.text))
        return

    console.print()
    assembled = reply.message
    if assembled is not None:
        for weather in extract_weather(assembled.content):
            console.print(_weather_table(weather))
        footer = (
            f"{assembled.tier.display_name} | {assembled.input_tokens:,} in / "
            f"{assembled.output_tokens:,} out"
        )
        if assembled.truncated:
            footer += " | stopped at iteration cap"
        console.print(f"[dim]{footer}[/dim]")


@app.command()
def ask(
    message: Annotated[str, typer.Argument(help="Message to send. Slash commands work too.")],
    session: SessionOption = DEFAULT_SESSION,
    config_file: ConfigOption = None,
    max_iterations: Annotated[
        int | None,
        typer.Option("--max-iterations", help="Cap on streaming passes per turn."),
    ] = None,
    parallel_tools: Annotated[
        bool | None,
        typer.Option("--parallel-tools/--sequential-tools", help="Run a round's tools concurrently."),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Send one message and stream the reply.

    Examples:
        turnloop ask "What's the weather like?"

        turnloop ask "/opus Explain the CAP theorem" --session notes
    """
    _setup_logging(verbose)
    file_config = _load_config(config_file)

    async def run() -> None:
        async with _runtime(
            file_config,
            max_iterations=max_iterations,
            parallel_tools=parallel_tools,
        ) as runtime:
            await _submit(runtime.session(session), message, show_routing=verbose)

    try:
        asyncio.run(run())
    except TurnloopError as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def chat(
    session: SessionOption = DEFAULT_SESSION,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Start an interactive chat. Type /help for commands, 'exit' to leave."""
    _setup_logging(verbose)
    file_config = _load_config(config_file)

    async def run() -> None:
        async with _runtime(file_config) as runtime:
            chat_session = runtime.session(session)
            console.print(f"[blue]Session: {session}[/blue] (type /help for commands)\n")
            while True:
                try:
                    message = await asyncio.to_thread(console.input, "[bold green]You:[/bold green] ")
                except EOFError:
                    break
                if message.strip().lower() in EXIT_WORDS:
                    break
                if not message.strip():
                    continue
                try:
                    await _submit(chat_session, message, show_routing=verbose)
                except TurnloopError as e:
                    console.print(f"\n[red]Error:[/red] {e}")
                console.print()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print()


@app.command()
def classify(
    message: Annotated[str, typer.Argument(help="Message to classify.")],
    config_file: ConfigOption = None,
    policy: Annotated[
        str | None,
        typer.Option("--policy", "-p", help="Routing policy: 'two_tier' or 'three_tier'."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", "-t", help="Confidence below which to step up one tier."),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Run the router on a message without answering it."""
    _setup_logging(verbose)
    file_config = _load_config(config_file)
    try:
        overrides = CLIOverrides(policy=policy, confidence_threshold=threshold)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    async def run() -> Classification:
        async with _runtime(file_config, overrides) as runtime:
            return await runtime.router.classify(message)

    try:
        result = asyncio.run(run())
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Classified as", result.response.tier.display_name)
    table.add_row("Confidence", f"{result.response.confidence:.2f}")
    table.add_row("Routed to", f"[bold]{result.tier.display_name}[/bold]")
    table.add_row("Model id", result.tier.model_id)
    table.add_row("Router tokens", f"{result.input_tokens} in / {result.output_tokens} out")
    console.print(table)


@app.command()
def tools(config_file: ConfigOption = None) -> None:
    """List built-in tools and whether they are usable right now."""
    file_config = _load_config(config_file)

    async def run() -> list[tuple[str, str, str, bool]]:
        async with _runtime(file_config) as runtime:
            context = runtime.dispatcher.context
            rows = []
            for name in ToolRegistry.list_tools():
                tool_class = ToolRegistry.get(name)
                if tool_class is None:
                    continue
                needs = env_var_for(tool_class.required_secret) if tool_class.required_secret else "-"
                rows.append((name, tool_class.description, needs, tool_class.is_available(context)))
            return rows

    table = Table(title="Built-in Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Requires")
    table.add_column("Available")
    table.add_column("Description")
    for name, description, needs, available in asyncio.run(run()):
        status = "[green]yes[/green]" if available else "[red]no[/red]"
        table.add_row(name, needs, status, description)
    console.print(table)


def _session_store(config_file: Path | None) -> JsonConversationStore:
    storage = ConfigLoader.resolve_storage_config(_load_config(config_file))
    return JsonConversationStore(storage.sessions_path)


@sessions_app.command("list")
def sessions_list(config_file: ConfigOption = None) -> None:
    """List stored chat sessions, newest first."""
    store = _session_store(config_file)
    summaries = store.list_sessions()
    if not summaries:
        console.print("[yellow]No sessions found.[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")
    for summary in summaries:
        table.add_row(
            summary.session_id,
            summary.name,
            str(summary.message_count),
            summary.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@sessions_app.command("show")
def sessions_show(session_id: SessionArgument, config_file: ConfigOption = None) -> None:
    """Show a session's final messages with their ids and grades."""
    store = _session_store(config_file)
    try:
        messages = store.load_messages(session_id)
        threshold = store.load_context_threshold(session_id)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    finals = [message for message in messages if message.is_final_response]
    if not finals:
        console.print(f"[yellow]No messages in {session_id}.[/yellow]")
        return

    table = Table(title=f"{store.session_name(session_id)} (context threshold {threshold})")
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Role")
    table.add_column("Grade", justify="right")
    table.add_column("Text")
    for message in finals:
        parsed = parse_content(message.content)
        text = parsed.display_text
        if parsed.images:
            text = f"[{len(parsed.images)} image(s)] {text}"
        table.add_row(message.id, message.role, str(message.text_grade), Text(text))
    console.print(table)
    for message in finals:
        for weather in parse_content(message.content).weather:
            console.print(_weather_table(weather))


@sessions_app.command("grade")
def sessions_grade(
    session_id: SessionArgument,
    message_id: Annotated[str, typer.Argument(help="Message id from 'sessions show'.")],
    grade: GradeValue,
    config_file: ConfigOption = None,
) -> None:
    """Grade a user message; turns graded below the threshold leave the context."""
    store = _session_store(config_file)
    try:
        store.set_text_grade(session_id, message_id, grade)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Graded {message_id} as {grade}[/green]")


@sessions_app.command("threshold")
def sessions_threshold(
    session_id: SessionArgument,
    value: Annotated[
        int | None,
        typer.Argument(min=0, max=5, help="New threshold from 0 to 5. Omit to show the current one."),
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Show or set the grade a turn needs to stay in the model's context."""
    store = _session_store(config_file)
    try:
        if value is None:
            current = store.load_context_threshold(session_id)
            console.print(f"Context threshold for {session_id}: {current}")
            return
        store.set_context_threshold(session_id, value)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Context threshold for {session_id} set to {value}[/green]")


@sessions_app.command("rename")
def sessions_rename(
    session_id: SessionArgument,
    name: Annotated[str, typer.Argument(help="New display name.")],
    config_file: ConfigOption = None,
) -> None:
    """Give a session a display name."""
    store = _session_store(config_file)
    try:
        store.rename(session_id, name)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Renamed {session_id} to {name}[/green]")


@sessions_app.command("delete")
def sessions_delete(
    session_id: SessionArgument,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
    config_file: ConfigOption = None,
) -> None:
    """Delete a session and all of its messages."""
    store = _session_store(config_file)
    if not yes:
        typer.confirm(f"Delete session {session_id}?", abort=True)
    try:
        store.delete(session_id)
    except TurnloopError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Deleted {session_id}[/green]")


def _secret_store(config_file: Path | None) -> FileSecretStore:
    storage = ConfigLoader.resolve_storage_config(_load_config(config_file))
    return FileSecretStore(storage.secrets_path)


def _check_secret_name(name: str) -> str:
    key = name.strip().lower()
    if key not in KNOWN_SECRETS:
        console.print(f"[red]Error:[/red] Unknown secret '{name}'")
        console.print(f"Valid names: {', '.join(KNOWN_SECRETS)}")
        raise typer.Exit(code=1)
    return key


@secrets_app.command("set")
def secrets_set(
    name: Annotated[str, typer.Argument(help="Secret name, e.g. tavily_api_key.")],
    value: Annotated[
        str,
        typer.Option("--value", prompt=True, hide_input=True, help="Secret value."),
    ],
    config_file: ConfigOption = None,
) -> None:
    """Store a secret in the secrets file."""
    key = _check_secret_name(name)
    store = _secret_store(config_file)
    try:
        store.set(key, value)
    except (TurnloopError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Saved {key} to {store.path}[/green]")


@secrets_app.command("delete")
def secrets_delete(
    name: Annotated[str, typer.Argument(help="Secret name.")],
    config_file: ConfigOption = None,
) -> None:
    """Remove a secret from the secrets file."""
    key = _check_secret_name(name)
    store = _secret_store(config_file)
    if store.delete(key):
        console.print(f"[green]Deleted {key}[/green]")
    else:
        console.print(f"[yellow]{key} was not set[/yellow]")


@secrets_app.command("list")
def secrets_list(config_file: ConfigOption = None) -> None:
    """Show which secrets are configured, without their values."""
    store = _secret_store(config_file)
    table = Table(title="Secrets")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Secrets file")
    table.add_column("Environment")
    for name in KNOWN_SECRETS:
        in_file = "[green]set[/green]" if store.has(name) else "-"
        env = env_var_for(name)
        in_env = f"[green]{env}[/green]" if os.environ.get(env) else "-"
        table.add_row(name, in_file, in_env)
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
