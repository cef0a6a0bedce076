"""Agent session orchestration.

``run_agent_session`` validates its inputs synchronously, then starts the
session loop as an asyncio task and hands back an ``AgentSession``:

    session = run_agent_session(
        ModelConfig(provider="ollama", model="qwen2.5:7b"),
        SessionConfig(system_prompt="You are a research assistant.", tools=[search]),
    )
    print(session.session_id)
    result = await session.result

The loop runs strictly sequential turns until the agent calls task_complete,
a tool suspends the session, or ``max_turns`` is reached. Internal faults end
the session with ``completion_reason == "error"``; the task itself never
raises.

Resuming a suspended session means starting a new one with the persisted
history plus the new input:

    SessionConfig(messages=[*result.messages, user_message("Approved.")])
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, MutableMapping

from agentic_loop.backend import Backend, LiteLLMBackend
from agentic_loop.callbacks import ErrorInfo, SessionCallbacks, SessionCompleteInfo, SessionSuspendInfo
from agentic_loop.config import ModelConfig, SessionConfig, describe_config
from agentic_loop.idle import IdleDetector
from agentic_loop.messages import Message, last_role, user_message, validate_messages
from agentic_loop.prompts import default_system_prompt, render_prompt
from agentic_loop.state import CompletionReason, SessionContext, SessionState
from agentic_loop.tools import ToolCatalog
from agentic_loop.turn import run_turn

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT: str = default_system_prompt()
NO_OUTPUT = "(no output)"


@dataclass
class SessionResult:
    """How a session settled.

    Attributes:
        session_id: The session's identity.
        final_output: Last assistant text ("(no output)" when there was none).
        total_turns: Turns this session ran (never more than max_turns).
        completion_reason: Why the session ended.
        messages: Full history at the end, ready to persist or resume from.
        task_result: ``result`` passed to task_complete, if any.
        suspend_info: Set when a tool suspended the session.
        error: The fault that ended the session, for ``completion_reason == "error"``.
        metadata: The caller's ``SessionConfig.metadata``.
    """

    session_id: str
    final_output: str
    total_turns: int
    completion_reason: CompletionReason
    messages: list[Message]
    task_result: Any = None
    suspend_info: SessionSuspendInfo | None = None
    error: BaseException | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentSession:
    """Handle to a running session: its id now, its result later."""

    session_id: str
    initial_message: str
    result: asyncio.Task[SessionResult] = field(repr=False)

    async def wait(self) -> SessionResult:
        return await self.result


class _SessionLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the session id."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['session_id']}] {msg}", kwargs


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex[:12]}"


def _starting_history(session_config: SessionConfig) -> tuple[list[Message], str]:
    """Initial history and the message the session effectively starts from."""
    if session_config.messages:
        history = validate_messages(session_config.messages)
        initial_message = render_prompt("resumed_initial_message", count=len(history))
        if last_role(history) == "assistant":
            history.append(user_message(render_prompt("continue_message")))
        return history, initial_message
    initial_message = session_config.initial_message or render_prompt("default_initial_message")
    return [user_message(initial_message)], initial_message


def _prepare_session(
    model_config: ModelConfig,
    session_config: SessionConfig,
    backend: Backend | None,
) -> tuple[SessionContext, SessionState, IdleDetector, str]:
    if session_config.max_turns < 1:
        raise ValueError(f"max_turns must be >= 1, got {session_config.max_turns}")
    model_config.validate()
    catalog = ToolCatalog.build(session_config.tools)
    history, initial_message = _starting_history(session_config)
    idle = IdleDetector(session_config.idle_threshold)

    session_id = session_config.session_id or new_session_id()
    if backend is None:
        backend = LiteLLMBackend(model_config, tool_timeout=session_config.tool_timeout)

    ctx = SessionContext(
        session_id=session_id,
        system_prompt=session_config.system_prompt or DEFAULT_SYSTEM_PROMPT,
        backend=backend,
        catalog=catalog,
        callbacks=session_config.callbacks or SessionCallbacks(),
        logger=_SessionLoggerAdapter(session_config.logger or logger, {"session_id": session_id}),
        max_turns=session_config.max_turns,
        token_limit=session_config.token_limit,
        llm_timeout=session_config.llm_timeout,
        metadata=dict(session_config.metadata),
    )
    ctx.logger.info(
        "Starting session: %s tools=%s metadata=%s",
        describe_config(model_config, session_config),
        catalog.names,
        ctx.metadata,
    )
    return ctx, SessionState(session_id=session_id, messages=history), idle, initial_message


async def _notify_complete(ctx: SessionContext, state: SessionState) -> None:
    info = SessionCompleteInfo(
        final_output=state.final_output,
        total_turns=state.turn_count,
        completion_reason=state.completion_reason or CompletionReason.ERROR,
        task_result=state.task_result,
    )
    try:
        await ctx.callbacks.complete(ctx.session_id, info)
    except Exception:
        ctx.logger.exception("on_complete callback failed")


async def _run_session(ctx: SessionContext, state: SessionState, idle: IdleDetector) -> SessionResult:
    log = ctx.logger
    callbacks = ctx.callbacks
    error: BaseException | None = None

    try:
        await callbacks.messages_update(ctx.session_id, state.messages)

        while state.should_continue and state.turn_count < ctx.max_turns:
            if idle.observe(state.messages, state.turn_count):
                log.info("Agent idle for %d turns, sending reminder", idle.threshold)
                state.messages.append(idle.reminder_message())
                await callbacks.messages_update(ctx.session_id, state.messages)
            await run_turn(ctx, state)

        if state.should_continue:
            log.info("Max turns (%d) reached - ending session", ctx.max_turns)
            state.finish(CompletionReason.MAX_TURNS)
            state.final_output += render_prompt("max_turns_marker", strip=False)
    except Exception as e:
        if state.completion_reason is None:
            error = e
            log.error("Session error: %s", e, exc_info=True)
            state.finish(CompletionReason.ERROR)
        else:
            # Already settled; the terminal reason stands.
            log.error("Callback failed after session ended (%s): %s",
                      state.completion_reason.value, e, exc_info=True)
        try:
            await callbacks.error(ctx.session_id, ErrorInfo(error=e, turn=state.turn_count, phase="session"))
        except Exception:
            log.exception("on_error callback failed")

    await _notify_complete(ctx, state)
    log.info("Session completed after %d turns (%s)", state.turn_count, state.completion_reason.value)

    return SessionResult(
        session_id=ctx.session_id,
        final_output=state.final_output or NO_OUTPUT,
        total_turns=state.turn_count,
        completion_reason=state.completion_reason,
        messages=list(state.messages),
        task_result=state.task_result,
        suspend_info=state.suspend_info,
        error=error,
        metadata=dict(ctx.metadata),
    )


def run_agent_session(
    model_config: ModelConfig,
    session_config: SessionConfig,
    *,
    backend: Backend | None = None,
) -> AgentSession:
    """Start an agent session on the running event loop.

    Args:
        model_config: Model the default backend talks to.
        session_config: Prompt, tools, history, limits and callbacks.
        backend: Replacement generation backend (defaults to LiteLLMBackend).

    Returns:
        AgentSession whose ``result`` task resolves to a SessionResult.

    Raises:
        LLMConfigurationError: The model config cannot reach a model.
        ReservedToolNameError: A caller tool is named task_complete.
        InvalidMessageError: The resumed history is malformed.
        ValueError: Duplicate tool names or max_turns < 1.
        RuntimeError: No running event loop.
    """
    ctx, state, idle, initial_message = _prepare_session(model_config, session_config, backend)
    loop = asyncio.get_running_loop()
    task = loop.create_task(_run_session(ctx, state, idle), name=f"agent-session-{ctx.session_id}")
    return AgentSession(session_id=ctx.session_id, initial_message=initial_message, result=task)


def run_agent_session_sync(
    model_config: ModelConfig,
    session_config: SessionConfig,
    *,
    backend: Backend | None = None,
) -> SessionResult:
    """Run a session to completion in a fresh event loop."""

    async def _main() -> SessionResult:
        return await run_agent_session(model_config, session_config, backend=backend).result

    return asyncio.run(_main())
