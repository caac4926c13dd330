"""Tests for CLI commands."""

from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from converge.agent.loop import Agent
from converge.cli.app import app
from converge.cli.chat import _handle_slash_command, prepare_config
from converge.config.loader import ConfigError
from converge.errors import AuthFailure
from converge.llm.client import NormalizedTurn, ToolCallRequest
from converge.tools.registry import ToolRegistry

runner = CliRunner()


class ScriptedAdapter:
    name = "scripted"

    def __init__(self, *turns):
        self.turns = list(turns)
        self.closed = False

    async def converse(self, messages, tool_specs):
        item = self.turns.pop(0) if len(self.turns) > 1 else self.turns[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


@pytest.fixture
def config_file():
    """Config path inside a temp dir; the file itself does not exist."""
    with TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "converge.yaml")


def test_version_command():
    """Test version command."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "converge version" in result.stdout


def test_help_command():
    """Test help output."""
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "Converge" in result.stdout
    assert "ask" in result.stdout
    assert "chat" in result.stdout
    assert "tools" in result.stdout


def test_chat_help():
    """Test chat command help."""
    result = runner.invoke(app, ["chat", "--help"])

    assert result.exit_code == 0
    assert "chat" in result.stdout.lower()


def test_tools_command_lists_enabled_tools(config_file):
    Path(config_file).write_text(yaml.safe_dump({"tools": {"pipeline": {"enabled": False}}}))

    result = runner.invoke(app, ["tools", "--config", config_file])

    assert result.exit_code == 0
    assert "web_search" in result.stdout
    assert "code_execution" in result.stdout
    assert "pipeline" not in result.stdout


def test_invalid_config_exits_with_error(config_file):
    Path(config_file).write_text("{ invalid yaml: [")

    result = runner.invoke(app, ["ask", "hi", "--config", config_file])

    assert result.exit_code == 1
    assert "Failed to load config" in result.stdout


def test_ask_prints_answer(config_file):
    adapter = ScriptedAdapter(NormalizedTurn(text="Paris is the capital of France."))

    with patch("converge.cli.chat.create_adapter", return_value=adapter) as factory:
        result = runner.invoke(
            app, ["ask", "Capital of France?", "--config", config_file, "--api-key", "sk-test"]
        )

    assert result.exit_code == 0
    assert "Paris is the capital of France." in result.stdout
    assert factory.call_args.kwargs["api_key"] == "sk-test"
    assert adapter.closed


def test_ask_shows_tool_activity(config_file):
    adapter = ScriptedAdapter(
        NormalizedTurn(
            tool_calls=(ToolCallRequest(id="p1", name="pipeline", arguments={"operation": "analyze", "text": "hi"}),),
            finish_reason="tool_calls",
        ),
        NormalizedTurn(text="One word."),
    )

    with patch("converge.cli.chat.create_adapter", return_value=adapter):
        result = runner.invoke(app, ["ask", "Analyze hi", "--config", config_file])

    assert result.exit_code == 0
    assert "pipeline" in result.stdout
    assert "One word." in result.stdout


def test_ask_quiet_hides_tool_activity(config_file):
    adapter = ScriptedAdapter(
        NormalizedTurn(
            tool_calls=(ToolCallRequest(id="p1", name="pipeline", arguments={"operation": "analyze", "text": "hi"}),),
            finish_reason="tool_calls",
        ),
        NormalizedTurn(text="One word."),
    )

    with patch("converge.cli.chat.create_adapter", return_value=adapter):
        result = runner.invoke(app, ["ask", "Analyze hi", "--config", config_file, "--quiet"])

    assert result.exit_code == 0
    assert "→ pipeline" not in result.stdout


def test_ask_failure_exit_code(config_file):
    adapter = ScriptedAdapter(AuthFailure("openai rejected the credentials", status=401))

    with patch("converge.cli.chat.create_adapter", return_value=adapter):
        result = runner.invoke(app, ["ask", "hi", "--config", config_file])

    assert result.exit_code == 1
    assert "rejected the credentials" in result.stdout


def test_ask_budget_exit_code(config_file):
    adapter = ScriptedAdapter(
        NormalizedTurn(
            tool_calls=(ToolCallRequest(id="s1", name="web_search", arguments={"query": "x"}),),
            finish_reason="tool_calls",
        )
    )

    with patch("converge.cli.chat.create_adapter", return_value=adapter):
        result = runner.invoke(
            app, ["ask", "loop forever", "--config", config_file, "--max-iterations", "1"]
        )

    assert result.exit_code == 2
    assert "Iteration limit" in result.stdout


# -- prepare_config ------------------------------------------------------------


def test_prepare_config_overrides(config_file):
    config = prepare_config(
        config_file,
        provider="anthropic",
        max_iterations=4,
        search_api_key="key",
        search_engine_id="engine",
    )

    assert config.provider.name == "anthropic"
    assert config.provider.resolved_model == "claude-sonnet-4-20250514"
    assert config.agent.max_iterations == 4
    assert config.tools.search.api_key == "key"
    assert config.tools.search.engine_id == "engine"


def test_prepare_config_provider_switch_drops_configured_model(config_file):
    Path(config_file).write_text(yaml.safe_dump({"provider": {"model": "gpt-4.1"}}))

    config = prepare_config(config_file, provider="gemini")

    assert config.provider.resolved_model == "gemini-2.0-flash"


def test_prepare_config_rejects_bad_override(config_file):
    with pytest.raises(ConfigError):
        prepare_config(config_file, provider="mistral")


# -- slash commands ------------------------------------------------------------


def make_agent() -> Agent:
    return Agent(adapter=ScriptedAdapter(NormalizedTurn(text="ok")), registry=ToolRegistry())


@pytest.mark.parametrize("command", ["/exit", "/quit", "/EXIT"])
def test_exit_commands_end_session(command):
    assert _handle_slash_command(command, make_agent()) is True


def test_reset_command_clears_conversation():
    agent = make_agent()
    agent.reset = MagicMock()

    assert _handle_slash_command("/reset", agent) is False
    agent.reset.assert_called_once()


@pytest.mark.parametrize("command", ["/history", "/tools", "/help", "/bogus"])
def test_other_commands_keep_session(command):
    assert _handle_slash_command(command, make_agent()) is False
