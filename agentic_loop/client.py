"""Thin async wrapper around litellm.acompletion.

One call, one attempt: a failed call raises, and the session turns the
failure into a conversational retry on its next turn. Observability hooks
fire around each call.

Usage:
    from agentic_loop.client import acall_llm

    result = await acall_llm(
        "openai/gpt-4o",
        [{"role": "user", "content": "Hello"}],
        tools=[...],
    )
    print(result.content, result.tool_calls, result.cost)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import litellm

from agentic_loop.errors import LLMEmptyResponseError, wrap_error

logger = logging.getLogger(__name__)

# Silence litellm's noisy default logging
litellm.suppress_debug_info = True


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@dataclass
class LLMCallResult:
    """Result from one litellm completion call.

    Attributes:
        content: The text response from the model
        usage: Token counts (prompt_tokens, completion_tokens, total_tokens)
        cost: Cost in USD for this call
        model: The model string that was used
        tool_calls: Tool calls in OpenAI format if the model invoked tools
        finish_reason: Why the model stopped: "stop", "length", "tool_calls", ...
        raw_response: The full litellm response object. Excluded from repr.
    """

    content: str
    usage: dict[str, Any]
    cost: float
    model: str
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str = ""
    raw_response: Any = field(default=None, repr=False)


@dataclass
class Hooks:
    """Observability hooks fired around each LLM call.

    Attributes:
        before_call: ``(model, messages, kwargs) → None``.
        after_call: ``(LLMCallResult) → None``. Fired after a successful call.
        on_error: ``(error) → None``. Fired when the call fails.
    """

    before_call: Callable[[str, list[dict[str, Any]], dict[str, Any]], None] | None = None
    after_call: Callable[[LLMCallResult], None] | None = None
    on_error: Callable[[Exception], None] | None = None


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _extract_usage(response: Any) -> dict[str, Any]:
    """Extract token usage dict from litellm response."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens,
    }


def _compute_cost(response: Any) -> float:
    """Compute cost via litellm.completion_cost; 0.0 for unpriced (local) models."""
    try:
        return float(litellm.completion_cost(completion_response=response))
    except Exception:
        logger.debug("completion_cost unavailable for this response; reporting $0")
        return 0.0


def _extract_tool_calls(message: Any) -> list[dict[str, Any]]:
    """Extract tool calls from response message into plain dicts."""
    if not message.tool_calls:
        return []
    result: list[dict[str, Any]] = []
    for tc in message.tool_calls:
        result.append({
            "id": tc.id,
            "type": tc.type,
            "function": {
                "name": tc.function.name,
                "arguments": tc.function.arguments,
            },
        })
    return result


def _build_result_from_response(response: Any, model: str) -> LLMCallResult:
    """Extract all fields from a litellm response into LLMCallResult."""
    content: str = response.choices[0].message.content or ""
    finish_reason: str = response.choices[0].finish_reason or ""
    tool_calls = _extract_tool_calls(response.choices[0].message)
    usage = _extract_usage(response)
    cost = _compute_cost(response)

    if not content.strip() and not tool_calls:
        raise LLMEmptyResponseError(
            f"Empty content from LLM (finish_reason={finish_reason or 'unknown'})"
        )

    logger.debug(
        "LLM call: model=%s tokens=%d cost=$%.6f finish=%s tool_calls=%d",
        model,
        usage["total_tokens"],
        cost,
        finish_reason,
        len(tool_calls),
    )

    return LLMCallResult(
        content=content,
        usage=usage,
        cost=cost,
        model=model,
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        raw_response=response,
    )


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


def _prepare_call_kwargs(
    model: str,
    messages: list[dict[str, Any]],
    *,
    tools: list[dict[str, Any]] | None,
    kwargs: dict[str, Any],
) -> dict[str, Any]:
    call_kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        **kwargs,
    }
    if tools:
        call_kwargs["tools"] = tools
    return call_kwargs


async def acall_llm(
    model: str,
    messages: list[dict[str, Any]],
    *,
    tools: list[dict[str, Any]] | None = None,
    hooks: Hooks | None = None,
    **kwargs: Any,
) -> LLMCallResult:
    """Run one chat completion through litellm.

    Args:
        model: Provider-qualified model string (e.g. "openai/gpt-4o",
               "ollama_chat/qwen2.5:7b")
        messages: Chat messages in OpenAI format
        tools: OpenAI tool schemas, omitted from the request when empty
        hooks: Observability hooks (before_call, after_call, on_error)
        **kwargs: Additional params passed to litellm (api_key, api_base,
                  timeout, temperature, ...)

    Returns:
        LLMCallResult with content, usage, cost, model, tool_calls,
        finish_reason, and raw_response

    Raises:
        LLMError: any failure, classified (rate limit, auth, transient, ...)
    """
    call_kwargs = _prepare_call_kwargs(model, messages, tools=tools, kwargs=kwargs)

    if hooks and hooks.before_call:
        hooks.before_call(model, messages, kwargs)

    try:
        response = await litellm.acompletion(**call_kwargs)
        result = _build_result_from_response(response, model)
    except Exception as e:
        if hooks and hooks.on_error:
            hooks.on_error(e)
        raise wrap_error(e) from e

    if hooks and hooks.after_call:
        hooks.after_call(result)
    return result
