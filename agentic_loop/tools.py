"""Tool catalog and in-process tool execution.

Generate OpenAI-compatible tool schemas from plain Python functions, validate
tool call arguments against the function signature, and execute calls
in-process.

Usage:
    from agentic_loop.tools import ToolCatalog

    async def search(query: str, limit: int = 10) -> str:
        '''Search for entities.'''
        ...

    catalog = ToolCatalog.build([search])
    catalog.schemas          # ready for litellm tools= parameter
    await catalog.execute("search", {"query": "paris"})   # -> Continue("...")
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import types
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Iterable,
    Iterator,
    Literal,
    Mapping,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from agentic_loop.errors import ReservedToolNameError, ToolCallError
from agentic_loop.prompts import render_prompt
from agentic_loop.signals import TASK_COMPLETE_TOOL_NAME, ToolOutcome, classify_tool_result, task_complete

logger = logging.getLogger(__name__)

RESERVED_TOOL_NAMES: frozenset[str] = frozenset({TASK_COMPLETE_TOOL_NAME})

# Python type → JSON Schema type
_TYPE_MAP: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _type_to_json_schema(tp: Any) -> dict[str, Any]:
    """Convert a Python type annotation to a JSON Schema fragment.

    Supports: str, int, float, bool, list[X], dict, Optional[X], Literal[...], Any.
    Raises ValueError for unsupported types.
    """
    if tp is Any:
        return {}

    origin = get_origin(tp)
    args = get_args(tp)

    # Optional[X] → unwrap to X (nullable not needed for OpenAI function calling)
    if origin is Union or origin is types.UnionType:
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return _type_to_json_schema(non_none[0])

    if origin is Literal:
        values = list(args)
        schema: dict[str, Any] = {"enum": values}
        kinds = {type(v) for v in values}
        if len(kinds) == 1 and next(iter(kinds)) in _TYPE_MAP:
            schema["type"] = _TYPE_MAP[next(iter(kinds))]
        return schema

    # list[X]
    if origin is list or tp is list:
        schema = {"type": "array"}
        if args:
            schema["items"] = _type_to_json_schema(args[0])
        return schema

    # dict (any dict)
    if origin is dict or tp is dict:
        return {"type": "object"}

    # Basic types
    if tp in _TYPE_MAP:
        return {"type": _TYPE_MAP[tp]}

    raise ValueError(
        f"Unsupported type annotation: {tp!r}. "
        f"Supported: str, int, float, bool, list[X], dict, Optional[X], Literal[...], Any."
    )


def _tool_parameters(fn: Callable[..., Any]) -> list[inspect.Parameter]:
    return [
        param
        for name, param in inspect.signature(fn).parameters.items()
        if name not in ("self", "cls")
        and param.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    ]


def _accepts_var_kwargs(fn: Callable[..., Any]) -> bool:
    return any(
        p.kind == inspect.Parameter.VAR_KEYWORD
        for p in inspect.signature(fn).parameters.values()
    )


def callable_to_openai_tool(
    fn: Callable[..., Any],
    *,
    name: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Convert a Python callable to an OpenAI function-calling tool schema.

    Inspects the function's name, type hints, and docstring.
    Every parameter must have a type annotation (raises ValueError otherwise).

    Args:
        fn: An async or sync function with typed parameters.
        name: Tool name override (defaults to ``fn.__name__``).
        description: Description override (defaults to the docstring's first line).

    Returns:
        OpenAI tool schema dict: {"type": "function", "function": {...}}
    """
    try:
        hints = get_type_hints(fn)
    except Exception:
        hints = {}

    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in _tool_parameters(fn):
        if param.name not in hints:
            raise ValueError(
                f"Parameter {param.name!r} of {fn.__name__!r} has no type annotation. "
                f"All parameters must be typed for schema generation."
            )

        prop = _type_to_json_schema(hints[param.name])
        if param.default is not inspect.Parameter.empty:
            if param.default is not None:
                prop["default"] = param.default
        else:
            required.append(param.name)
        properties[param.name] = prop

    if description is None:
        description = ""
        override_desc = getattr(fn, "__tool_description__", None)
        if isinstance(override_desc, str) and override_desc.strip():
            description = override_desc.strip()
        elif fn.__doc__:
            first_line = fn.__doc__.strip().split("\n")[0].strip()
            if first_line:
                description = first_line

    parameters: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }
    if required:
        parameters["required"] = required

    return {
        "type": "function",
        "function": {
            "name": name or fn.__name__,
            "description": description,
            "parameters": parameters,
        },
    }


def _build_args_model(fn: Callable[..., Any], tool_name: str) -> type[BaseModel]:
    """Pydantic model mirroring the callable's keyword parameters."""
    try:
        hints = get_type_hints(fn)
    except Exception:
        hints = {}
    fields: dict[str, Any] = {}
    for param in _tool_parameters(fn):
        annotation = hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (annotation, default)
    extra = "allow" if _accepts_var_kwargs(fn) else "forbid"
    return create_model(  # type: ignore[call-overload]
        f"{tool_name}_arguments",
        __config__=ConfigDict(extra=extra, arbitrary_types_allowed=True),
        **fields,
    )


@dataclass(frozen=True)
class Tool:
    """One callable tool with its schema and argument validator."""

    name: str
    description: str
    parameters: dict[str, Any]
    fn: Callable[..., Any] = field(repr=False)
    args_model: type[BaseModel] = field(repr=False)

    @classmethod
    def from_callable(
        cls,
        fn: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> "Tool":
        schema = callable_to_openai_tool(fn, name=name, description=description)["function"]
        return cls(
            name=schema["name"],
            description=schema["description"],
            parameters=schema["parameters"],
            fn=fn,
            args_model=_build_args_model(fn, schema["name"]),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_arguments(self, arguments: Any) -> dict[str, Any]:
        """Validate and coerce call arguments. Raises ToolCallError."""
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolCallError(
                f"Arguments for {self.name} must be an object, got {type(arguments).__name__}",
                tool_name=self.name,
            )
        try:
            validated = self.args_model.model_validate(arguments)
        except ValidationError as exc:
            raise ToolCallError(
                f"Invalid arguments for {self.name}: {exc}",
                tool_name=self.name,
                original=exc,
            ) from exc
        values = dict(validated)
        if validated.model_extra:
            values.update(validated.model_extra)
        return values

    async def invoke(self, arguments: dict[str, Any], *, timeout: float | None = None) -> Any:
        """Call the function. Awaitable results are raced against ``timeout``."""
        raw = self.fn(**arguments)
        if inspect.isawaitable(raw):
            if timeout is not None:
                return await asyncio.wait_for(raw, timeout=timeout)
            return await raw
        return raw


def task_complete_tool() -> Tool:
    """The reserved tool every session exposes."""
    return Tool.from_callable(
        task_complete,
        description=render_prompt("task_complete_description"),
    )


class ToolCatalog:
    """Ordered, name-unique set of tools available to a session."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(
                    f"Duplicate tool name {tool.name!r}: "
                    f"{self._tools[tool.name].fn!r} and {tool.fn!r} have the same name."
                )
            self._tools[tool.name] = tool

    @classmethod
    def build(
        cls,
        tools: Iterable[Callable[..., Any] | Tool] | Mapping[str, Callable[..., Any] | Tool] | None,
    ) -> "ToolCatalog":
        """Build a caller catalog. Reserved names raise ReservedToolNameError."""
        prepared: list[Tool] = []
        if tools is None:
            items: list[tuple[str | None, Any]] = []
        elif isinstance(tools, Mapping):
            items = list(tools.items())
        else:
            items = [(None, t) for t in tools]

        for name, item in items:
            if isinstance(item, Tool):
                tool = item if name is None or name == item.name else Tool(
                    name=name,
                    description=item.description,
                    parameters=item.parameters,
                    fn=item.fn,
                    args_model=item.args_model,
                )
            elif callable(item):
                tool = Tool.from_callable(item, name=name)
            else:
                raise TypeError(f"Tool {name or item!r} is neither callable nor a Tool")
            if tool.name in RESERVED_TOOL_NAMES:
                raise ReservedToolNameError(
                    f"Tool name {tool.name!r} is reserved; register your tool under another name."
                )
            prepared.append(tool)
        return cls(prepared)

    def with_tools(self, *extra: Tool) -> "ToolCatalog":
        return ToolCatalog([*self._tools.values(), *extra])

    def with_task_complete(self) -> "ToolCatalog":
        if TASK_COMPLETE_TOOL_NAME in self._tools:
            return self
        return self.with_tools(task_complete_tool())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema for tool in self._tools.values()]

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def validate_call(self, name: str, arguments: Any) -> dict[str, Any]:
        """Check a requested call is well-formed. Raises ToolCallError."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolCallError(f"Unknown tool: {name}", tool_name=name)
        return tool.validate_arguments(arguments)

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> ToolOutcome:
        """Run one validated call and classify its result.

        Tool exceptions and timeouts do not propagate; they come back as an
        ``{"error": ...}`` payload so the model can react to them.
        """
        tool = self._tools.get(name)
        if tool is None:
            return classify_tool_result({"error": f"Unknown tool: {name}"})
        try:
            raw_result = await tool.invoke(arguments, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Tool %s timed out after %ss", name, timeout)
            raw_result = {"error": f"Tool call timed out after {timeout}s"}
        except Exception as e:
            logger.warning("Tool %s raised %s: %s", name, type(e).__name__, e)
            raw_result = {"error": f"{type(e).__name__}: {e}"}
        return classify_tool_result(raw_result)
