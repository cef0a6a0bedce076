"""Token-budget-triggered history summarization.

When the approximate size of the history exceeds ``token_limit``, the history
(or the part ``on_before_summarize`` selects) is condensed by the backend
into a two-message summary, which ``on_after_summarize`` may extend before it
replaces the whole history.

Token counts are an approximation: characters / 4, rounded up.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Sequence

from agentic_loop.errors import SummarizationError
from agentic_loop.messages import Message, assistant_message, content_text, user_message, validate_messages
from agentic_loop.prompts import render_prompt

if TYPE_CHECKING:
    from agentic_loop.backend import Backend
    from agentic_loop.state import SessionContext, SessionState

CHARS_PER_TOKEN: int = 4


def estimate_token_count(messages: Sequence[Message]) -> int:
    total_chars = sum(len(content_text(m)) for m in messages)
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def render_conversation(messages: Sequence[Message]) -> str:
    return "\n\n".join(f"{m.get('role')}: {content_text(m)}" for m in messages)


async def summarize_messages(backend: Backend, messages: Sequence[Message]) -> list[Message]:
    """Ask the backend for a summary and wrap it as ``[marker, summary]``."""
    prompt = render_prompt("summary_instruction", conversation=render_conversation(messages))
    summary: Any = await backend.complete(prompt)
    if not isinstance(summary, str) or not summary.strip():
        raise SummarizationError("Backend returned an empty summary")
    return [
        user_message(render_prompt("summary_marker")),
        assistant_message(summary),
    ]


async def maybe_summarize(ctx: SessionContext, state: SessionState) -> bool:
    """Summarize the history when it exceeds the token limit.

    Returns True when the history was replaced. Failures are logged and leave
    the history untouched.
    """
    if not ctx.token_limit:
        return False
    estimated = estimate_token_count(state.messages)
    if estimated <= ctx.token_limit:
        return False

    log = ctx.logger
    log.info(
        "Token limit exceeded (%d > %d), summarizing %d messages",
        estimated,
        ctx.token_limit,
        len(state.messages),
    )
    try:
        to_summarize = await ctx.callbacks.before_summarize(ctx.session_id, state.messages)
        summary_messages = await summarize_messages(ctx.backend, to_summarize)
        replacement = await ctx.callbacks.after_summarize(ctx.session_id, summary_messages)
        replacement = validate_messages(replacement)
    except Exception as e:
        error = e if isinstance(e, SummarizationError) else SummarizationError(str(e), original=e)
        log.error("Summarization failed, keeping full history: %s", error)
        return False

    state.messages = replacement
    log.info(
        "Summarized history to %d messages (~%d tokens)",
        len(replacement),
        estimate_token_count(replacement),
    )
    await ctx.callbacks.messages_update(ctx.session_id, state.messages)
    return True
