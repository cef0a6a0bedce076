"""Generation backend contract and the default litellm implementation.

The session loop only talks to a ``Backend``:

- ``generate(system_prompt, history, catalog)`` runs one model round trip,
  executes the tool calls it requested and returns everything as a
  ``GenerateResult`` whose ``response_messages`` are already canonical and
  are appended to history verbatim;
- ``complete(prompt)`` is a plain text completion (used for summaries).

``LiteLLMBackend`` implements both over ``litellm.acompletion`` for any
``ModelConfig``. Tests and callers can substitute any object with the same
two coroutines.
"""

from __future__ import annotations

import json as _json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable

from agentic_loop.client import Hooks, acall_llm
from agentic_loop.config import ModelConfig
from agentic_loop.errors import ToolCallError
from agentic_loop.messages import (
    Message,
    assistant_message,
    text_part,
    to_provider_messages,
    tool_call_part,
    tool_result_part,
    user_message,
)
from agentic_loop.signals import Continue, outcome_payload
from agentic_loop.tools import ToolCatalog

logger = logging.getLogger(__name__)

# Stands in for a missing function name so the call still fits in history.
UNKNOWN_TOOL_NAME = "unknown"


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCallRequest:
    """One tool call the model asked for.

    ``invalid`` calls (bad JSON, unknown tool, arguments that fail
    validation) were not executed; ``error`` says why.
    """

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = field(default_factory=dict)
    invalid: bool = False
    error: str | None = None


@dataclass(frozen=True)
class ToolResultEntry:
    """Result of one executed tool call (a ToolOutcome or a raw payload)."""

    tool_call_id: str
    tool_name: str
    output: Any = None


@dataclass
class GenerateResult:
    """Everything one backend round trip produced."""

    text: str | None = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    tool_results: list[ToolResultEntry] = field(default_factory=list)
    response_messages: list[Message] = field(default_factory=list)
    usage: dict[str, Any] = field(default_factory=dict)
    cost: float = 0.0


@runtime_checkable
class Backend(Protocol):
    """What the session loop needs from a text-generation service."""

    async def generate(
        self,
        system_prompt: str,
        history: Sequence[Message],
        catalog: ToolCatalog,
    ) -> GenerateResult: ...

    async def complete(self, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# litellm backend
# ---------------------------------------------------------------------------


def _new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def parse_tool_call(tc: dict[str, Any], catalog: ToolCatalog) -> ToolCallRequest:
    """Turn an OpenAI-format tool call into a request, validating it."""
    fn_info = tc.get("function") or {}
    tool_name = fn_info.get("name") or UNKNOWN_TOOL_NAME
    arguments_raw = fn_info.get("arguments")
    tc_id = tc.get("id") or _new_tool_call_id()

    if arguments_raw in (None, ""):
        arguments: Any = {}
    elif isinstance(arguments_raw, str):
        try:
            arguments = _json.loads(arguments_raw)
        except _json.JSONDecodeError as exc:
            logger.error("Failed to parse tool call arguments for %s: %s", tool_name, arguments_raw[:200])
            return ToolCallRequest(
                tool_call_id=tc_id,
                tool_name=tool_name,
                invalid=True,
                error=f"Invalid JSON arguments: {exc}",
            )
    else:
        arguments = arguments_raw

    try:
        validated = catalog.validate_call(tool_name, arguments)
    except ToolCallError as exc:
        return ToolCallRequest(
            tool_call_id=tc_id,
            tool_name=tool_name,
            args=arguments if isinstance(arguments, dict) else {},
            invalid=True,
            error=str(exc),
        )
    return ToolCallRequest(tool_call_id=tc_id, tool_name=tool_name, args=validated)


def _is_error_payload(payload: Any) -> bool:
    return isinstance(payload, dict) and set(payload) == {"error"}


class LiteLLMBackend:
    """Backend over litellm for a ``ModelConfig``.

    Args:
        model_config: Provider, model and connection settings.
        tool_timeout: Seconds each tool invocation may take (None = no limit).
        hooks: Observability hooks forwarded to every litellm call.
        completion_kwargs: Extra litellm params (temperature, max_tokens, ...).
    """

    def __init__(
        self,
        model_config: ModelConfig,
        *,
        tool_timeout: float | None = None,
        hooks: Hooks | None = None,
        completion_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self.model_config = model_config
        self.tool_timeout = tool_timeout
        self.hooks = hooks
        self._extra_kwargs = dict(completion_kwargs or {})

    def _call_kwargs(self) -> dict[str, Any]:
        return {**self.model_config.completion_kwargs(), **self._extra_kwargs}

    async def generate(
        self,
        system_prompt: str,
        history: Sequence[Message],
        catalog: ToolCatalog,
    ) -> GenerateResult:
        result = await acall_llm(
            self.model_config.litellm_model,
            to_provider_messages(system_prompt, history),
            tools=catalog.schemas,
            hooks=self.hooks,
            **self._call_kwargs(),
        )

        text = result.content or None
        requests = [parse_tool_call(tc, catalog) for tc in result.tool_calls]

        if not requests:
            return GenerateResult(
                text=text,
                response_messages=[assistant_message(result.content)],
                usage=result.usage,
                cost=result.cost,
            )

        call_parts: list[dict[str, Any]] = [text_part(text)] if text else []
        call_parts.extend(tool_call_part(r.tool_call_id, r.tool_name, r.args) for r in requests)

        entries: list[ToolResultEntry] = []
        result_parts: list[dict[str, Any]] = []
        for request in requests:
            if request.invalid:
                result_parts.append(tool_result_part(
                    request.tool_call_id,
                    request.tool_name,
                    {"error": request.error},
                    is_error=True,
                ))
                continue
            outcome = await catalog.execute(
                request.tool_name,
                request.args,
                timeout=self.tool_timeout,
            )
            payload = outcome_payload(outcome)
            entries.append(ToolResultEntry(request.tool_call_id, request.tool_name, outcome))
            result_parts.append(tool_result_part(
                request.tool_call_id,
                request.tool_name,
                payload,
                is_error=isinstance(outcome, Continue) and _is_error_payload(payload),
            ))

        return GenerateResult(
            text=text,
            tool_calls=requests,
            tool_results=entries,
            response_messages=[assistant_message(call_parts), user_message(result_parts)],
            usage=result.usage,
            cost=result.cost,
        )

    async def complete(self, prompt: str) -> str:
        result = await acall_llm(
            self.model_config.litellm_model,
            [{"role": "user", "content": prompt}],
            hooks=self.hooks,
            **self._call_kwargs(),
        )
        return result.content
