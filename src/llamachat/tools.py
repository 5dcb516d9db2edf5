"""Concrete implementations for callable tools and the tool registry."""

import inspect
import logging
import numbers
import random
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import ToolFailure, ToolInvocationFailure, ToolNotFound
from .models import ToolCall, ToolResult

logger = logging.getLogger(__name__)

NO_TOOL_NAME = "<none>"


class Tool(ABC):
    """Interface for a capability the model may ask to run."""

    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def schema(self) -> Dict[str, Any]:
        """Returns the function-calling specification sent to the model."""
        pass

    @abstractmethod
    def invoke(self, arguments: Dict[str, Any]) -> str:
        """Runs the tool.

        Raises
        ------
        ToolInvocationFailure
            The arguments are unusable or the tool could not complete.
        """
        pass


class NoTool(Tool):
    """Stands for "no tool selected". It is never advertised and does nothing."""

    def name(self) -> str:
        return NO_TOOL_NAME

    def schema(self) -> Dict[str, Any]:
        return {}

    def invoke(self, arguments: Dict[str, Any]) -> str:
        return ""


def _number(arguments: Dict[str, Any], key: str) -> float:
    if key not in arguments:
        raise ToolInvocationFailure(f"missing argument {key!r}")
    value = arguments[key]
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ToolInvocationFailure(
            f"argument {key!r} must be a number, got {type(value).__name__}"
        )
    return float(value)


class Adder(Tool):
    def name(self) -> str:
        return "adder"

    def schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": "adder",
                "description": "Add any two numbers together and get the sum.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "a": {"type": "number", "description": "first operand"},
                        "b": {"type": "number", "description": "second operand"},
                    },
                    "required": ["a", "b"],
                },
            },
        }

    def invoke(self, arguments: Dict[str, Any]) -> str:
        total = _number(arguments, "a") + _number(arguments, "b")
        return f"{total:f}"


class Motd(Tool):
    """Message of the day."""

    MESSAGES = [
        "Hello, Pythonista!",
        "Have a great day!",
        "Make it happen!",
        "Keep coding and keep smiling!",
        "Readability counts.",
    ]

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def name(self) -> str:
        return "motd"

    def schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": "motd",
                "description": "Get a message of the day",
                "parameters": {"type": "object", "properties": {}, "required": []},
            },
        }

    def invoke(self, arguments: Dict[str, Any]) -> str:
        return self._rng.choice(self.MESSAGES)


_JSON_TYPES = {int: "integer", float: "number", str: "string", bool: "boolean"}


class FunctionTool(Tool):
    """Wraps a plain Python function, deriving its schema from the signature.

    The first line of the docstring becomes the description. Annotated
    parameters map to JSON types; parameters without a default are required.
    """

    def __init__(self, func: Callable[..., Any]):
        if not callable(func):
            raise ValueError("Provided object is not a callable function.")
        self.func = func
        self._signature = inspect.signature(func)

    def name(self) -> str:
        return self.func.__name__

    def schema(self) -> Dict[str, Any]:
        properties = {}
        required = []
        for param in self._signature.parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            json_type = _JSON_TYPES.get(param.annotation, "string")
            properties[param.name] = {"type": json_type}
            if param.default is inspect.Parameter.empty:
                required.append(param.name)

        doc = inspect.getdoc(self.func) or ""
        return {
            "type": "function",
            "function": {
                "name": self.name(),
                "description": doc.splitlines()[0] if doc else "",
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def invoke(self, arguments: Dict[str, Any]) -> str:
        try:
            self._signature.bind(**arguments)
        except TypeError as exc:
            raise ToolInvocationFailure(
                f"Invalid arguments for tool '{self.name()}': {exc}"
            ) from exc
        try:
            result = self.func(**arguments)
        except Exception as exc:
            raise ToolInvocationFailure(
                f"Error executing tool '{self.name()}': {exc}"
            ) from exc
        return str(result)


class ToolRegistry:
    """Catalog of tools, built once at startup and handed to the session.

    ``<none>`` is always present. Registering an existing name replaces the
    earlier tool.
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: Dict[str, Tool] = {}
        self.register(NoTool())
        for tool in tools:
            self.register(tool)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def register(self, tool: Tool) -> None:
        name = tool.name()
        if name in self._tools:
            logger.warning("Tool %s registered twice, keeping the latest", name)
        self._tools[name] = tool

    def register_function(self, func: Callable[..., Any]) -> None:
        self.register(FunctionTool(func))

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def names(self) -> List[str]:
        return sorted(self._tools)

    def get_tools(
        self, enabled: bool = True, names: Optional[Iterable[str]] = None
    ) -> List[Dict[str, Any]]:
        """Schemas for the callable tools, or nothing when tools are off.

        ``names`` narrows the result to those tools; the default is all.
        """
        if not enabled:
            return []
        wanted = None if names is None else set(names)
        return [
            tool.schema()
            for name, tool in sorted(self._tools.items())
            if name != NO_TOOL_NAME and (wanted is None or name in wanted)
        ]

    def invoke(self, name: str, arguments: Dict[str, Any]) -> str:
        tool = self.get(name)
        try:
            return tool.invoke(arguments)
        except ToolFailure:
            raise
        except Exception as exc:
            raise ToolInvocationFailure(f"Error executing tool '{name}': {exc}") from exc

    def execute_tool_call(self, tool_call: ToolCall) -> ToolResult:
        """Runs one requested call. Never raises; failures become error results."""
        name = tool_call.function_name
        if tool_call.error:
            return ToolResult(function_name=name, content=tool_call.error, is_error=True)
        try:
            content = self.invoke(name, tool_call.arguments)
        except ToolFailure as exc:
            logger.info("Tool call %s failed: %s", name, exc)
            return ToolResult(function_name=name, content=str(exc), is_error=True)
        return ToolResult(function_name=name, content=content)


def default_registry() -> ToolRegistry:
    return ToolRegistry([Adder(), Motd()])
