"""Session callbacks.

Attach callbacks for logging, persistence, UIs or tracing. Every hook is
optional, may be sync or async, and receives the session id first. Unset
hooks default to no-ops (summarization hooks to identity), so the loop calls
them unconditionally and awaits each one before moving on.

Example::

    async def save(session_id, messages):
        await store.put(session_id, messages)

    callbacks = SessionCallbacks(
        on_messages_update=save,
        on_tool_call=lambda sid, info: print(f"[{sid}] {info.tool_name}({info.args})"),
    )
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Literal, Sequence

if TYPE_CHECKING:
    from agentic_loop.state import CompletionReason

ErrorPhase = Literal["backend", "tool_call", "session"]


@dataclass(frozen=True)
class ToolCallInfo:
    tool_name: str
    args: dict[str, Any]
    turn: int
    tool_call_id: str = ""


@dataclass(frozen=True)
class ToolResultInfo:
    tool_name: str
    result: Any
    turn: int
    tool_call_id: str = ""


@dataclass(frozen=True)
class ErrorInfo:
    """An error the session reported and recovered from (or ended on).

    ``phase`` is "backend" for failed/timed-out model calls, "tool_call" for
    malformed tool calls, and "session" for the fault that ended a session.
    """

    error: BaseException
    turn: int
    phase: ErrorPhase


@dataclass(frozen=True)
class SessionSuspendInfo:
    reason: str
    data: Any
    turn: int


@dataclass(frozen=True)
class SessionCompleteInfo:
    final_output: str
    total_turns: int
    completion_reason: CompletionReason
    task_result: Any = None


def _noop(*args: Any) -> None:
    return None


def _identity(session_id: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return messages


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class SessionCallbacks:
    """Hooks fired during a session, in turn order.

    Attributes:
        on_turn_start: ``(session_id, turn)``.
        on_assistant_message: ``(session_id, text, turn)``.
        on_tool_call: ``(session_id, ToolCallInfo)``. Fired before results are reported.
        on_tool_result: ``(session_id, ToolResultInfo)``. Not fired for results
            carrying a completion or suspension signal.
        on_error: ``(session_id, ErrorInfo)``.
        on_messages_update: ``(session_id, messages)`` with the full history.
        on_before_summarize: ``(session_id, messages) → messages`` to summarize.
        on_after_summarize: ``(session_id, summary_messages) → messages`` that
            replace the whole history.
        on_suspend: ``(session_id, SessionSuspendInfo)``.
        on_complete: ``(session_id, SessionCompleteInfo)``. Fired exactly once.
    """

    on_turn_start: Callable[..., Any] = _noop
    on_assistant_message: Callable[..., Any] = _noop
    on_tool_call: Callable[..., Any] = _noop
    on_tool_result: Callable[..., Any] = _noop
    on_error: Callable[..., Any] = _noop
    on_messages_update: Callable[..., Any] = _noop
    on_before_summarize: Callable[..., Any] = _identity
    on_after_summarize: Callable[..., Any] = _identity
    on_suspend: Callable[..., Any] = _noop
    on_complete: Callable[..., Any] = _noop

    async def turn_start(self, session_id: str, turn: int) -> None:
        await _resolve(self.on_turn_start(session_id, turn))

    async def assistant_message(self, session_id: str, text: str, turn: int) -> None:
        await _resolve(self.on_assistant_message(session_id, text, turn))

    async def tool_call(self, session_id: str, info: ToolCallInfo) -> None:
        await _resolve(self.on_tool_call(session_id, info))

    async def tool_result(self, session_id: str, info: ToolResultInfo) -> None:
        await _resolve(self.on_tool_result(session_id, info))

    async def error(self, session_id: str, info: ErrorInfo) -> None:
        await _resolve(self.on_error(session_id, info))

    async def messages_update(self, session_id: str, messages: Sequence[dict[str, Any]]) -> None:
        await _resolve(self.on_messages_update(session_id, list(messages)))

    async def before_summarize(
        self, session_id: str, messages: Sequence[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        return list(await _resolve(self.on_before_summarize(session_id, list(messages))))

    async def after_summarize(
        self, session_id: str, summary_messages: Sequence[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        return list(await _resolve(self.on_after_summarize(session_id, list(summary_messages))))

    async def suspend(self, session_id: str, info: SessionSuspendInfo) -> None:
        await _resolve(self.on_suspend(session_id, info))

    async def complete(self, session_id: str, info: SessionCompleteInfo) -> None:
        await _resolve(self.on_complete(session_id, info))
