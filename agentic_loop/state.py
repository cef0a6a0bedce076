"""Per-session state shared by the orchestrator, turn executor and summarizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from agentic_loop.messages import Message

if TYPE_CHECKING:
    from agentic_loop.backend import Backend
    from agentic_loop.callbacks import SessionCallbacks, SessionSuspendInfo
    from agentic_loop.tools import ToolCatalog


class CompletionReason(str, Enum):
    TASK_COMPLETE = "task_complete"
    MAX_TURNS = "max_turns"
    ERROR = "error"
    SUSPENDED = "suspended"


@dataclass
class SessionState:
    """Mutable state of one running session. Never shared across sessions."""

    session_id: str
    messages: list[Message] = field(default_factory=list)
    turn_count: int = 0
    should_continue: bool = True
    completion_reason: CompletionReason | None = None
    task_result: Any = None
    suspend_info: SessionSuspendInfo | None = None
    final_output: str = ""

    def finish(self, reason: CompletionReason) -> None:
        self.should_continue = False
        self.completion_reason = reason


@dataclass(frozen=True)
class SessionContext:
    """Immutable wiring of one session: who to call and with what limits."""

    session_id: str
    system_prompt: str
    backend: Backend
    catalog: ToolCatalog
    callbacks: SessionCallbacks
    logger: logging.Logger | logging.LoggerAdapter
    max_turns: int
    token_limit: int | None = None
    llm_timeout: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
