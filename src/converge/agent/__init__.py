"""Agent loop for tool-calling conversations.

The agent alternates between asking the model for a turn and executing the
tool calls that turn requests, feeding results back until the model answers
without tools or the iteration budget is spent.

Usage::

    from converge.agent import Agent
    from converge.config.schema import ConvergeConfig
    from converge.llm.factory import create_adapter
    from converge.tools.registry import build_registry

    config = ConvergeConfig()
    agent = Agent(
        adapter=create_adapter(config.provider),
        registry=build_registry(config.tools),
        max_iterations=config.agent.max_iterations,
    )
    outcome = await agent.run("What is 17 ** 23? Use Python.")
"""

from converge.agent.loop import Agent, AgentOutcome, LoopState
from converge.agent.state import ConversationState, LoopBudget

__all__ = [
    "Agent",
    "AgentOutcome",
    "ConversationState",
    "LoopBudget",
    "LoopState",
]
