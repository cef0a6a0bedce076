"""One turn of an agent session: a backend round trip and its bookkeeping."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from agentic_loop.backend import GenerateResult
from agentic_loop.callbacks import ErrorInfo, SessionSuspendInfo, ToolCallInfo, ToolResultInfo
from agentic_loop.errors import BackendTimeoutError, ToolCallError, wrap_error
from agentic_loop.messages import user_message
from agentic_loop.prompts import render_prompt
from agentic_loop.signals import Completed, Suspended, classify_tool_result, outcome_payload
from agentic_loop.state import CompletionReason
from agentic_loop.summarize import maybe_summarize

if TYPE_CHECKING:
    from agentic_loop.state import SessionContext, SessionState


async def _generate(ctx: SessionContext, state: SessionState) -> GenerateResult:
    call = ctx.backend.generate(
        ctx.system_prompt,
        list(state.messages),
        ctx.catalog.with_task_complete(),
    )
    if ctx.llm_timeout is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=ctx.llm_timeout)
    except asyncio.TimeoutError as e:
        raise BackendTimeoutError("LLM call timeout", original=e) from e


async def run_turn(ctx: SessionContext, state: SessionState) -> None:
    """Run one turn and fold its outcome into ``state``.

    Backend failures do not propagate: the error is reported and a retry
    notice is appended, so the model tries again next turn. Anything else
    raised here (a failing callback, for instance) ends the session.
    """
    log = ctx.logger
    callbacks = ctx.callbacks
    session_id = ctx.session_id

    state.turn_count += 1
    turn = state.turn_count
    log.debug("Turn %d/%d", turn, ctx.max_turns)
    await callbacks.turn_start(session_id, turn)

    try:
        result = await _generate(ctx, state)
    except Exception as e:
        error = wrap_error(e)
        log.error("LLM call error on turn %d: %s", turn, error)
        await callbacks.error(session_id, ErrorInfo(error=error, turn=turn, phase="backend"))
        state.messages.append(user_message(render_prompt("backend_retry", error=str(error))))
        await callbacks.messages_update(session_id, state.messages)
        return

    if result.text:
        log.debug("Assistant response: %.200s", result.text)
        state.final_output = result.text
        await callbacks.assistant_message(session_id, result.text, turn)

    if result.tool_calls:
        log.debug("Tool calls: %d", len(result.tool_calls))
        for request in result.tool_calls:
            if request.invalid:
                error = ToolCallError(
                    request.error or "Invalid tool call format",
                    tool_name=request.tool_name,
                    tool_call_id=request.tool_call_id,
                )
                log.error("Invalid tool call for %s: %s", request.tool_name, error)
                await callbacks.error(session_id, ErrorInfo(error=error, turn=turn, phase="tool_call"))
                continue
            await callbacks.tool_call(session_id, ToolCallInfo(
                tool_name=request.tool_name,
                args=request.args,
                turn=turn,
                tool_call_id=request.tool_call_id,
            ))

        for entry in result.tool_results:
            outcome = classify_tool_result(entry.output)
            if isinstance(outcome, Completed):
                log.info("Task completed: %s", outcome.summary)
                state.messages.extend(result.response_messages)
                state.messages.append(user_message(render_prompt("task_complete_closing")))
                state.task_result = outcome.result
                state.finish(CompletionReason.TASK_COMPLETE)
                return
            if isinstance(outcome, Suspended):
                log.info("Session suspended: %s", outcome.reason)
                state.messages.extend(result.response_messages)
                state.messages.append(user_message(render_prompt("suspended_closing", reason=outcome.reason)))
                info = SessionSuspendInfo(reason=outcome.reason, data=outcome.data, turn=turn)
                state.suspend_info = info
                state.finish(CompletionReason.SUSPENDED)
                await callbacks.suspend(session_id, info)
                return
            log.debug("Tool result: %s", entry.tool_name)
            await callbacks.tool_result(session_id, ToolResultInfo(
                tool_name=entry.tool_name,
                result=outcome_payload(outcome),
                turn=turn,
                tool_call_id=entry.tool_call_id,
            ))

    state.messages.extend(result.response_messages)
    await callbacks.messages_update(session_id, state.messages)

    if ctx.token_limit:
        await maybe_summarize(ctx, state)
