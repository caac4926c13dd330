"""Terminal rendering of conversation events with Rich."""

import json
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.status import Status

from converge.agent.loop import AgentOutcome, LoopState
from converge.llm.client import Message

STATE_LABELS = {
    LoopState.AWAITING_MODEL: "Thinking...",
    LoopState.DISPATCHING_TOOLS: "Running tools...",
}

PREVIEW_CHARS = 400


def setup_logging(console: Console, verbose: bool = False) -> None:
    """Route log records through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


class ConsoleRenderer:
    """Read-only observer that prints tool activity and progress."""

    def __init__(self, console: Console, show_tools: bool = True):
        self.console = console
        self.show_tools = show_tools
        self.status: Status | None = None

    def on_message(self, message: Message) -> None:
        if not self.show_tools:
            return

        if message.role == "assistant" and message.tool_calls:
            for call in message.tool_calls:
                args = json.dumps(call.arguments, ensure_ascii=False)
                self.console.print(f"[cyan]→ {call.name}[/cyan] [dim]{escape(_preview(args))}[/dim]")
        elif message.role == "tool_result":
            style = "red" if message.is_error else "green"
            mark = "✗" if message.is_error else "✓"
            self.console.print(
                f"[{style}]{mark} {message.name}[/{style}] [dim]{escape(_preview(message.content or ''))}[/dim]"
            )

    def on_state(self, state: LoopState) -> None:
        label = STATE_LABELS.get(state)
        if label and self.status is not None:
            self.status.update(f"[bold green]{label}[/bold green]")

    def outcome(self, outcome: AgentOutcome) -> None:
        """Render a terminal outcome distinctly per status."""
        if outcome.status is LoopState.DONE:
            self.console.print("\n[bold green]converge[/bold green]")
            self.console.print(Markdown(outcome.answer or "_(empty response)_"))
        elif outcome.status is LoopState.BUDGET_EXCEEDED:
            self.console.print(
                Panel(
                    f"Iteration limit reached after {outcome.iterations} tool round(s) "
                    "without a final answer.",
                    title="Iteration limit",
                    border_style="yellow",
                )
            )
        elif outcome.status is LoopState.CANCELLED:
            self.console.print("[yellow]Cancelled[/yellow]")
        else:
            detail = outcome.error.describe() if outcome.error else "Unknown error"
            kind = outcome.error.kind if outcome.error else "error"
            self.console.print(Panel(escape(detail), title=f"Failed ({kind})", border_style="red"))


def _preview(text: str) -> str:
    text = text.replace("\n", " ")
    if len(text) > PREVIEW_CHARS:
        return text[:PREVIEW_CHARS] + "..."
    return text
