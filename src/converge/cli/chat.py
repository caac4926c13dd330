"""Interactive chat REPL and one-shot ask command."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from converge.agent.loop import Agent, AgentOutcome, LoopState
from converge.cli.render import ConsoleRenderer
from converge.config.loader import ConfigError, load_config
from converge.llm.factory import create_adapter
from converge.tools.registry import build_registry

if TYPE_CHECKING:
    from converge.config.schema import ConvergeConfig

console = Console()
logger = logging.getLogger(__name__)

EXIT_CODES = {
    LoopState.DONE: 0,
    LoopState.FAILED: 1,
    LoopState.BUDGET_EXCEEDED: 2,
    LoopState.CANCELLED: 130,
}


def prepare_config(
    config_path: str | None,
    provider: str | None = None,
    model: str | None = None,
    max_iterations: int | None = None,
    search_api_key: str | None = None,
    search_engine_id: str | None = None,
) -> ConvergeConfig:
    """Load configuration and apply command-line overrides.

    Raises:
        ConfigError: If the file or an override is invalid
    """
    path = Path(config_path) if config_path else None
    config = load_config(path)

    data = config.model_dump()
    if provider:
        data["provider"]["name"] = provider
        if not model:
            data["provider"]["model"] = None
    if model:
        data["provider"]["model"] = model
    if max_iterations:
        data["agent"]["max_iterations"] = max_iterations
    if search_api_key:
        data["tools"]["search"]["api_key"] = search_api_key
    if search_engine_id:
        data["tools"]["search"]["engine_id"] = search_engine_id

    try:
        return type(config).model_validate(data)
    except ValueError as e:
        raise ConfigError(f"Invalid option: {e}") from e


def build_agent(config: ConvergeConfig, api_key: str | None, renderer: ConsoleRenderer) -> Agent:
    """Wire the adapter, registry and renderer into an agent."""
    return Agent(
        adapter=create_adapter(config.provider, api_key=api_key),
        registry=build_registry(config.tools),
        max_iterations=config.agent.max_iterations,
        system_prompt=config.agent.system_prompt,
        model_timeout=config.agent.model_timeout,
        on_message=renderer.on_message,
        on_state=renderer.on_state,
    )


async def run_with_cancel(agent: Agent, user_input: str, renderer: ConsoleRenderer) -> AgentOutcome:
    """Run one request, cancelling it on Ctrl-C instead of killing the session."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, agent.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops do not support signal handlers
        pass

    try:
        with console.status("[bold green]Thinking...[/bold green]", spinner="dots") as status:
            renderer.status = status
            return await agent.run(user_input)
    finally:
        renderer.status = None
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def ask_command(config: ConvergeConfig, question: str, api_key: str | None, show_tools: bool) -> int:
    """Answer one question and return the process exit code."""
    renderer = ConsoleRenderer(console, show_tools=show_tools)

    async def _ask() -> AgentOutcome:
        agent = build_agent(config, api_key, renderer)
        try:
            return await run_with_cancel(agent, question, renderer)
        finally:
            await agent.adapter.close()

    outcome = asyncio.run(_ask())
    renderer.outcome(outcome)
    return EXIT_CODES[outcome.status]


def chat_command(config: ConvergeConfig, api_key: str | None, show_tools: bool) -> None:
    """Start interactive chat session."""
    console.print(
        Panel.fit(
            f"[bold blue]converge chat[/bold blue]\n"
            f"Provider: {config.provider.name} ({config.provider.resolved_model})\n"
            f"Type /help for commands, /exit to quit",
            border_style="blue",
        )
    )

    asyncio.run(_async_chat(config, api_key, show_tools))


async def _async_chat(config: ConvergeConfig, api_key: str | None, show_tools: bool) -> None:
    renderer = ConsoleRenderer(console, show_tools=show_tools)
    agent = build_agent(config, api_key, renderer)

    try:
        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (EOFError, KeyboardInterrupt):
                break

            if not user_input.strip():
                continue

            if user_input.startswith("/"):
                if _handle_slash_command(user_input, agent):
                    break
                continue

            outcome = await run_with_cancel(agent, user_input, renderer)
            renderer.outcome(outcome)
    finally:
        await agent.adapter.close()

    console.print("\n[cyan]Goodbye![/cyan]")


def _handle_slash_command(command: str, agent: Agent) -> bool:
    """Handle a slash command.

    Returns:
        True if the session should end
    """
    cmd = command.strip().lower()

    if cmd in ("/exit", "/quit"):
        return True

    if cmd == "/reset":
        agent.reset()
        console.print("[yellow]Conversation reset[/yellow]")
    elif cmd == "/history":
        _print_history(agent)
    elif cmd == "/tools":
        for spec in agent.registry.describe():
            console.print(f"[cyan]{spec.name}[/cyan] - {spec.description}")
    elif cmd == "/help":
        console.print(
            "/history  show the conversation log\n"
            "/tools    list available tools\n"
            "/reset    start a new conversation\n"
            "/exit     quit"
        )
    else:
        console.print(f"[red]Unknown command: {escape(command)}[/red]")

    return False


def _print_history(agent: Agent) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Role")
    table.add_column("Content", overflow="fold")

    for index, message in enumerate(agent.messages, 1):
        content = message.content or ""
        if message.tool_calls:
            calls = ", ".join(f"{tc.name}({tc.id})" for tc in message.tool_calls)
            content = f"{content}\n[tool calls] {calls}".strip()
        if message.role == "tool_result":
            content = f"[{message.tool_call_id}] {content}"
        table.add_row(str(index), message.role, Text(content))

    console.print(table)
