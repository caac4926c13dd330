"""
Simple Agent Example
====================

This example demonstrates basic agent usage with converge.
The agent can:
- Answer questions
- Search the web (fallback results without search credentials)
- Run Python snippets in a sandbox
- Call a custom tool defined right here

Prerequisites:
- converge installed: pip install -e .
- An API key for the chosen provider in CONVERGE_API_KEY

Usage:
    CONVERGE_API_KEY=sk-... python examples/01_simple_agent.py
"""

import asyncio
import os

from converge.agent.loop import Agent, LoopState
from converge.config.schema import ToolsConfig
from converge.llm.openai import OpenAIAdapter
from converge.tools.registry import build_registry


async def main():
    """Run a simple agent with the built-in tools plus one custom tool."""

    # 1. Create the provider adapter
    print("Initializing converge agent...\n")
    adapter = OpenAIAdapter(
        api_key=os.environ.get("CONVERGE_API_KEY"),
        model="gpt-4o-mini",
        temperature=0.3,
    )

    # 2. Built-in tools from configuration, plus a custom one
    registry = build_registry(ToolsConfig())

    @registry.tool(description="Convert a temperature between Celsius and Fahrenheit")
    async def convert_temperature(value: float, to_unit: str) -> str:
        """Convert a temperature.

        value: Temperature to convert
        to_unit: Either 'C' or 'F'
        """
        if to_unit.upper() == "F":
            return f"{value * 9 / 5 + 32:.1f} F"
        return f"{(value - 32) * 5 / 9:.1f} C"

    print(f"Loaded {len(registry)} tools: {', '.join(registry.names())}\n")

    # 3. Create agent with an observer that prints tool activity
    def show(message):
        if message.role == "tool_result":
            print(f"  [{message.name}] {(message.content or '')[:120]}")

    agent = Agent(
        adapter=adapter,
        registry=registry,
        max_iterations=5,
        system_prompt="You are a helpful assistant. Use tools when they help.",
        on_message=show,
    )

    # 4. Example queries demonstrating different capabilities
    queries = [
        # Simple question (no tools needed)
        "What is 2 + 2?",
        # Custom tool
        "What is 21 degrees Celsius in Fahrenheit?",
        # Code execution
        "Use Python to compute the 30th Fibonacci number.",
        # Web search
        "Search for 'Python 3.13 new features' and summarize the top result.",
    ]

    async with adapter:
        for i, query in enumerate(queries, 1):
            print(f"\n{'=' * 70}")
            print(f"Query {i}: {query}")
            print("=" * 70 + "\n")

            agent.reset()
            outcome = await agent.run(query)

            if outcome.status is LoopState.DONE:
                print(f"\nAgent response:\n{outcome.answer}\n")
            else:
                detail = outcome.error.describe() if outcome.error else ""
                print(f"\nRun ended with {outcome.status.value}: {detail}\n")

    print("\n" + "=" * 70)
    print("Example complete!")
    print("=" * 70)


def sync_main():
    """Synchronous wrapper for the async main function."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")


if __name__ == "__main__":
    sync_main()
