"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from converge import __version__

# Create Typer app
app = typer.Typer(
    name="converge",
    help="Converge - tool-calling agent loop for LLM backends",
    no_args_is_help=True,
)

console = Console()

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file (default: ~/.converge/converge.yaml)",
)
PROVIDER_OPTION = typer.Option(
    None, "--provider", "-p", help="Provider override: openai, anthropic or gemini"
)
MODEL_OPTION = typer.Option(None, "--model", "-m", help="Model name override")
API_KEY_OPTION = typer.Option(
    None,
    "--api-key",
    envvar="CONVERGE_API_KEY",
    help="Model provider API key",
    show_default=False,
)
SEARCH_KEY_OPTION = typer.Option(
    None,
    "--search-api-key",
    envvar="CONVERGE_SEARCH_API_KEY",
    help="Web search API key",
    show_default=False,
)
SEARCH_ENGINE_OPTION = typer.Option(
    None,
    "--search-engine-id",
    envvar="CONVERGE_SEARCH_ENGINE_ID",
    help="Web search engine identifier",
)
QUIET_OPTION = typer.Option(False, "--quiet", "-q", help="Hide tool calls and results")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


@app.command()
def version():
    """Show converge version."""
    console.print(f"converge version {__version__}")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question for the agent"),
    config_path: str = CONFIG_OPTION,
    provider: str = PROVIDER_OPTION,
    model: str = MODEL_OPTION,
    max_iterations: int = typer.Option(
        None, "--max-iterations", "-n", help="Tool iteration budget override"
    ),
    api_key: str = API_KEY_OPTION,
    search_api_key: str = SEARCH_KEY_OPTION,
    search_engine_id: str = SEARCH_ENGINE_OPTION,
    quiet: bool = QUIET_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Answer a single question and exit.

    Exit code 0 means answered, 1 failed, 2 iteration limit reached.
    """
    from converge.cli.chat import ask_command, prepare_config
    from converge.cli.render import setup_logging
    from converge.config.loader import ConfigError

    setup_logging(console, verbose)
    try:
        config = prepare_config(
            config_path,
            provider=provider,
            model=model,
            max_iterations=max_iterations,
            search_api_key=search_api_key,
            search_engine_id=search_engine_id,
        )
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None

    code = ask_command(config, question, api_key=api_key, show_tools=not quiet)
    raise typer.Exit(code)


@app.command()
def chat(
    config_path: str = CONFIG_OPTION,
    provider: str = PROVIDER_OPTION,
    model: str = MODEL_OPTION,
    api_key: str = API_KEY_OPTION,
    search_api_key: str = SEARCH_KEY_OPTION,
    search_engine_id: str = SEARCH_ENGINE_OPTION,
    quiet: bool = QUIET_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Start interactive chat session."""
    from converge.cli.chat import chat_command, prepare_config
    from converge.cli.render import setup_logging
    from converge.config.loader import ConfigError

    setup_logging(console, verbose)
    try:
        config = prepare_config(
            config_path,
            provider=provider,
            model=model,
            search_api_key=search_api_key,
            search_engine_id=search_engine_id,
        )
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None

    chat_command(config, api_key=api_key, show_tools=not quiet)


@app.command()
def tools(config_path: str = CONFIG_OPTION):
    """List the tools the agent can call."""
    from pathlib import Path

    from converge.config.loader import ConfigError, load_config
    from converge.tools.registry import build_registry

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None

    for spec in build_registry(config.tools).describe():
        params = ", ".join(
            p.name if p.required else f"{p.name}?" for p in spec.parameters
        )
        console.print(f"[cyan]{spec.name}[/cyan]({params}) - {spec.description}")


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
