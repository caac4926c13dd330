"""Tool registration and lookup."""

import inspect
import logging
import types
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final, Union, get_type_hints

from converge.tools.base import FunctionTool, ToolExecutor, ToolFunction, ToolParameter, ToolSpec

if TYPE_CHECKING:
    from converge.config.schema import ToolsConfig

logger = logging.getLogger(__name__)


class _NotFound:
    """Sentinel returned by :meth:`ToolRegistry.resolve` for unknown names."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND: Final = _NotFound()


def _python_type_to_json_schema(py_type: Any) -> str:
    """Convert Python type hint to JSON Schema type.

    Args:
        py_type: Python type annotation

    Returns:
        JSON Schema type string
    """
    origin = getattr(py_type, "__origin__", None)

    # Unwrap Union types (including Optional and X | None)
    args = getattr(py_type, "__args__", ())
    if origin is Union or isinstance(py_type, types.UnionType):
        non_none = [arg for arg in args if arg is not type(None)]
        if non_none:
            py_type = non_none[0]
            origin = getattr(py_type, "__origin__", None)

    # Parameterized generics such as list[str]
    if origin is not None:
        py_type = origin

    type_map = {
        str: "string",
        int: "integer",
        float: "number",
        bool: "boolean",
        list: "array",
        dict: "object",
    }

    return type_map.get(py_type, "string")


def _param_descriptions(doc: str | None) -> dict[str, str]:
    """Pick ``name: description`` lines out of a docstring."""
    descriptions: dict[str, str] = {}
    if not doc:
        return descriptions
    for line in doc.split("\n"):
        line = line.strip()
        name, sep, rest = line.partition(":")
        if sep and name.isidentifier() and rest.strip():
            descriptions.setdefault(name, rest.strip())
    return descriptions


def spec_from_function(fn: ToolFunction, description: str, name: str | None = None) -> ToolSpec:
    """Build a ToolSpec by introspecting a function signature and docstring.

    Args:
        fn: Async tool function
        description: Human-readable description of what the tool does
        name: Tool name, defaults to the function name

    Returns:
        ToolSpec describing the function's parameters
    """
    hints = get_type_hints(fn)
    sig = inspect.signature(fn)
    doc_descriptions = _param_descriptions(fn.__doc__)

    parameters: list[ToolParameter] = []
    for param_name, param in sig.parameters.items():
        param_type = hints.get(param_name, str)
        parameters.append(
            ToolParameter(
                name=param_name,
                type=_python_type_to_json_schema(param_type),
                description=doc_descriptions.get(param_name, f"Parameter {param_name}"),
                required=param.default is inspect.Parameter.empty,
            )
        )

    return ToolSpec(name=name or fn.__name__, description=description, parameters=tuple(parameters))


class ToolRegistry:
    """Name-keyed set of tool executors.

    Specs are declared once at registration and never change afterwards;
    :meth:`resolve` is a pure lookup.
    """

    def __init__(self, tools: list[ToolExecutor] | None = None):
        self._tools: dict[str, ToolExecutor] = {}
        for executor in tools or []:
            self.register(executor)

    def register(self, executor: ToolExecutor) -> ToolExecutor:
        """Add an executor under its spec name.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        name = executor.spec.name
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered")
        self._tools[name] = executor
        logger.debug("Registered tool %s", name)
        return executor

    def tool(
        self, description: str, name: str | None = None
    ) -> Callable[[ToolFunction], ToolFunction]:
        """Decorator to register an async function as a tool.

        Example:
            @registry.tool(description="Look up a word")
            async def define(word: str, language: str = "en") -> str:
                '''Define a word.

                word: The word to define
                language: ISO language code
                '''
                ...
        """

        def decorator(fn: ToolFunction) -> ToolFunction:
            spec = spec_from_function(fn, description, name=name)
            self.register(FunctionTool(spec=spec, fn=fn))
            return fn

        return decorator

    def describe(self) -> tuple[ToolSpec, ...]:
        """Specs of every registered tool, in registration order."""
        return tuple(executor.spec for executor in self._tools.values())

    def resolve(self, name: str) -> ToolExecutor | _NotFound:
        """Look up the executor for a tool name.

        Returns:
            The executor, or ``NOT_FOUND`` for unknown names
        """
        return self._tools.get(name, NOT_FOUND)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_registry(config: "ToolsConfig") -> ToolRegistry:
    """Register the built-in executors enabled in configuration.

    Args:
        config: Tools section of the configuration

    Returns:
        ToolRegistry with web_search, code_execution and pipeline as enabled
    """
    from converge.tools.code_execution import CodeExecutor
    from converge.tools.pipeline import PipelineExecutor
    from converge.tools.web_search import SearchExecutor

    registry = ToolRegistry()

    if config.search.enabled:
        registry.register(
            SearchExecutor(
                api_key=config.search.api_key,
                engine_id=config.search.engine_id,
                endpoint=config.search.endpoint,
                timeout=config.search.timeout,
                max_results=config.search.max_results,
            )
        )
    if config.code_execution.enabled:
        registry.register(
            CodeExecutor(
                timeout=config.code_execution.timeout,
                max_output_bytes=config.code_execution.max_output_bytes,
                memory_limit_mb=config.code_execution.memory_limit_mb,
                image=config.code_execution.image,
                runtime=config.code_execution.runtime,
                pids_limit=config.code_execution.pids_limit,
                cpu_cores=config.code_execution.cpu_cores,
            )
        )
    if config.pipeline.enabled:
        registry.register(
            PipelineExecutor(
                endpoint=config.pipeline.endpoint,
                api_key=config.pipeline.api_key,
                timeout=config.pipeline.timeout,
            )
        )

    return registry
