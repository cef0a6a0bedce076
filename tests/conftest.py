"""Shared fixtures: a scripted backend that replays canned turns (no network)."""

from __future__ import annotations

from typing import Any, Sequence

import pytest

from agentic_loop.backend import GenerateResult, ToolCallRequest, ToolResultEntry
from agentic_loop.config import ModelConfig
from agentic_loop.messages import (
    assistant_message,
    text_part,
    tool_call_part,
    tool_result_part,
    user_message,
)
from agentic_loop.signals import outcome_payload
from agentic_loop.tools import ToolCatalog


class ScriptedBackend:
    """Backend replaying one scripted step per ``generate`` call.

    Steps:
        str: plain assistant text, no tool calls.
        BaseException: raised from ``generate``.
        GenerateResult: returned as-is.
        list: tool calls, each ``(name, args)`` or a ``ToolCallRequest``.
            Valid calls run through the catalog like the litellm backend does.
        (str, list): assistant text plus tool calls.

    Once the script runs out, every call answers "Still working."
    """

    def __init__(self, steps: Sequence[Any] = (), *, summary: Any = "Summary of the conversation.") -> None:
        self.steps = list(steps)
        self.summary = summary
        self.calls: list[dict[str, Any]] = []
        self.prompts: list[str] = []

    async def generate(self, system_prompt: str, history: Sequence[dict[str, Any]], catalog: ToolCatalog) -> GenerateResult:
        self.calls.append({
            "system_prompt": system_prompt,
            "history": [dict(m) for m in history],
            "tools": catalog.names,
        })
        step = self.steps.pop(0) if self.steps else "Still working."
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, GenerateResult):
            return step
        if isinstance(step, str):
            return GenerateResult(text=step, response_messages=[assistant_message(step)])
        if isinstance(step, tuple):
            text, calls = step
            return await self._run_tools(calls, catalog, text=text)
        return await self._run_tools(step, catalog)

    async def _run_tools(self, calls: Sequence[Any], catalog: ToolCatalog, *, text: str | None = None) -> GenerateResult:
        turn = len(self.calls)
        requests: list[ToolCallRequest] = []
        for index, call in enumerate(calls):
            if isinstance(call, ToolCallRequest):
                requests.append(call)
            else:
                name, args = call
                requests.append(ToolCallRequest(f"call_{turn}_{index}", name, dict(args)))

        call_parts = [text_part(text)] if text else []
        call_parts.extend(tool_call_part(r.tool_call_id, r.tool_name, r.args) for r in requests)
        entries: list[ToolResultEntry] = []
        result_parts = []
        for request in requests:
            if request.invalid:
                result_parts.append(tool_result_part(
                    request.tool_call_id, request.tool_name, {"error": request.error}, is_error=True,
                ))
                continue
            outcome = await catalog.execute(request.tool_name, request.args)
            entries.append(ToolResultEntry(request.tool_call_id, request.tool_name, outcome))
            result_parts.append(tool_result_part(request.tool_call_id, request.tool_name, outcome_payload(outcome)))

        return GenerateResult(
            text=text,
            tool_calls=requests,
            tool_results=entries,
            response_messages=[assistant_message(call_parts), user_message(result_parts)],
        )

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.summary, BaseException):
            raise self.summary
        return self.summary


class CallbackRecorder:
    """Records every callback as ``(hook, args)`` in firing order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def hook(self, name: str):
        def _record(*args: Any) -> None:
            self.events.append((name, args))
        return _record

    def async_hook(self, name: str):
        async def _record(*args: Any) -> None:
            self.events.append((name, args))
        return _record

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for hook, args in self.events if hook == name]


@pytest.fixture
def model_config() -> ModelConfig:
    return ModelConfig(provider="ollama", model="test-model")


@pytest.fixture
def scripted_backend():
    return ScriptedBackend


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()
