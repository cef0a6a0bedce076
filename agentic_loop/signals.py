"""Task-completion and suspension signals carried by tool results.

Tool outputs are otherwise opaque, so a tool ends or pauses a session by
returning one of the typed variants (or the equivalent marker dict):

    from agentic_loop import suspend

    async def wait_for_approval(reason: str) -> Any:
        '''Wait for external approval before proceeding.'''
        return suspend("waiting_for_approval", {"request_reason": reason})

``classify_tool_result`` turns any tool payload into exactly one of
``Continue`` / ``Completed`` / ``Suspended``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

TASK_COMPLETE_MARKER = "__task_complete__"
SUSPEND_MARKER = "__suspend__"
TASK_COMPLETE_TOOL_NAME = "task_complete"


@dataclass(frozen=True)
class Continue:
    """Ordinary tool output; the session keeps going."""

    payload: Any = None


@dataclass(frozen=True)
class Completed:
    """The agent declared its task done."""

    summary: str
    result: Any = None

    def to_payload(self) -> dict[str, Any]:
        return {TASK_COMPLETE_MARKER: True, "summary": self.summary, "result": self.result}


@dataclass(frozen=True)
class Suspended:
    """The session must pause until an external event arrives."""

    reason: str
    data: Any = None

    def to_payload(self) -> dict[str, Any]:
        return {SUSPEND_MARKER: True, "reason": self.reason, "data": self.data}


ToolOutcome = Union[Continue, Completed, Suspended]


def complete(summary: str, result: Any = None) -> Completed:
    return Completed(summary=summary, result=result)


def suspend(reason: str, data: Any = None) -> Suspended:
    return Suspended(reason=reason, data=data)


def classify_tool_result(payload: Any) -> ToolOutcome:
    """Classify one tool result payload. Pure; never raises.

    Typed variants pass through. Dicts are recognized by their reserved
    boolean marker; completion wins when both markers are present.
    """
    if isinstance(payload, (Continue, Completed, Suspended)):
        return payload
    if isinstance(payload, dict):
        if payload.get(TASK_COMPLETE_MARKER) is True:
            summary = payload.get("summary")
            return Completed(
                summary=summary if isinstance(summary, str) else "",
                result=payload.get("result"),
            )
        if payload.get(SUSPEND_MARKER) is True:
            reason = payload.get("reason")
            return Suspended(
                reason=reason if isinstance(reason, str) else "",
                data=payload.get("data"),
            )
    return Continue(payload)


def outcome_payload(outcome: ToolOutcome) -> Any:
    """What a result looks like in the message history."""
    if isinstance(outcome, Continue):
        return outcome.payload
    return outcome.to_payload()


def task_complete(summary: str, result: Any = None) -> dict[str, Any]:
    """Mark the current task as complete."""
    return Completed(summary=summary, result=result).to_payload()
