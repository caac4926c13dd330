"""Converge - bounded tool-calling agent loop for LLM backends.

Converge drives a model through repeated turns, dispatching the tool calls it
requests and feeding the results back until it produces a final answer or the
iteration budget runs out.

Key modules:

- :mod:`converge.agent` - Agent loop, conversation state and loop budget
- :mod:`converge.llm` - Provider adapters (OpenAI, Anthropic, Gemini)
- :mod:`converge.tools` - Tool registry and built-in executors
- :mod:`converge.config` - YAML configuration
- :mod:`converge.cli` - Command-line interface
"""

__version__ = "0.1.0"
