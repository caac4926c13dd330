"""Tool registry and built-in executors.

Every tool is a :class:`~converge.tools.base.ToolExecutor` with a declarative
:class:`~converge.tools.base.ToolSpec`. Executors validate their arguments
before running and report every failure as an error
:class:`~converge.tools.base.ToolResult` instead of raising.

Built-in tools:

- **web_search** - Google Programmable Search, with a labeled fallback
- **code_execution** - Python in a network-less, time-limited container
- **pipeline** - summarize / translate / analyze service, with placeholders

Usage::

    from converge.config.schema import ToolsConfig
    from converge.tools.registry import build_registry

    registry = build_registry(ToolsConfig())
"""

from converge.tools.base import FunctionTool, ToolExecutor, ToolParameter, ToolResult, ToolSpec
from converge.tools.registry import NOT_FOUND, ToolRegistry, build_registry

__all__ = [
    "NOT_FOUND",
    "FunctionTool",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "build_registry",
]
