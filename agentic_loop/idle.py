"""Idle-agent detection.

An agent that answers with plain text and no tool calls leaves the
conversation ending on an assistant message. After ``threshold`` such turns
in a row it gets a reminder to either keep working or call task_complete.
"""

from __future__ import annotations

from typing import Any, Sequence

from agentic_loop.config import DEFAULT_IDLE_THRESHOLD
from agentic_loop.messages import last_role, user_message
from agentic_loop.prompts import render_prompt


class IdleDetector:
    """Counts consecutive idle observations; never ends a session."""

    def __init__(self, threshold: int = DEFAULT_IDLE_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        self.threshold = threshold
        self.streak = 0

    def observe(self, messages: Sequence[dict[str, Any]], turn_count: int = 1) -> bool:
        """Record one loop-top observation.

        Returns True when the reminder is due; the streak restarts from 0.
        """
        if turn_count > 0 and last_role(messages) == "assistant":
            self.streak += 1
        else:
            self.streak = 0
        if self.streak >= self.threshold:
            self.streak = 0
            return True
        return False

    @staticmethod
    def reminder_message() -> dict[str, Any]:
        return user_message(render_prompt("idle_reminder"))
