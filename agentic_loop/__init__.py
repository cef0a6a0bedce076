"""Bounded, turn-based agent sessions over litellm.

A session alternates model calls and tool executions until the agent calls
task_complete, a tool suspends the session, or the turn budget runs out.

Usage:
    from agentic_loop import ModelConfig, SessionConfig, run_agent_session

    async def search(query: str) -> str:
        '''Search the knowledge base.'''
        ...

    session = run_agent_session(
        ModelConfig(provider="openai", model="gpt-4o"),
        SessionConfig(
            system_prompt="You are a research assistant.",
            initial_message="Find the population of Paris.",
            tools=[search],
            max_turns=20,
        ),
    )
    result = await session.result
    print(result.completion_reason, result.final_output, result.task_result)

    # Blocking
    from agentic_loop import run_agent_session_sync

    result = run_agent_session_sync(model_config, session_config)

Logging is silent until the application configures the ``agentic_loop``
logger.
"""

import logging as _logging

from agentic_loop.backend import Backend, GenerateResult, LiteLLMBackend, ToolCallRequest, ToolResultEntry
from agentic_loop.callbacks import (
    ErrorInfo,
    SessionCallbacks,
    SessionCompleteInfo,
    SessionSuspendInfo,
    ToolCallInfo,
    ToolResultInfo,
)
from agentic_loop.config import (
    DEFAULT_IDLE_THRESHOLD,
    DEFAULT_MAX_TURNS,
    ModelConfig,
    SessionConfig,
    load_api_keys,
)
from agentic_loop.errors import (
    AgenticLoopError,
    BackendTimeoutError,
    InvalidMessageError,
    LLMAuthError,
    LLMConfigurationError,
    LLMContentFilterError,
    LLMEmptyResponseError,
    LLMError,
    LLMModelNotFoundError,
    LLMQuotaExhaustedError,
    LLMRateLimitError,
    LLMTransientError,
    ReservedToolNameError,
    SummarizationError,
    ToolCallError,
    classify_error,
    wrap_error,
)
from agentic_loop.idle import IdleDetector
from agentic_loop.messages import (
    Message,
    assistant_message,
    file_part,
    image_part,
    text_part,
    to_provider_messages,
    tool_call_part,
    tool_result_part,
    user_message,
    validate_messages,
)
from agentic_loop.session import (
    DEFAULT_SYSTEM_PROMPT,
    AgentSession,
    SessionResult,
    run_agent_session,
    run_agent_session_sync,
)
from agentic_loop.signals import (
    Completed,
    Continue,
    Suspended,
    ToolOutcome,
    classify_tool_result,
    complete,
    suspend,
)
from agentic_loop.state import CompletionReason
from agentic_loop.summarize import CHARS_PER_TOKEN, estimate_token_count
from agentic_loop.tools import Tool, ToolCatalog, callable_to_openai_tool

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

__all__ = [
    "AgentSession",
    "AgenticLoopError",
    "Backend",
    "BackendTimeoutError",
    "CHARS_PER_TOKEN",
    "Completed",
    "CompletionReason",
    "Continue",
    "DEFAULT_IDLE_THRESHOLD",
    "DEFAULT_MAX_TURNS",
    "DEFAULT_SYSTEM_PROMPT",
    "ErrorInfo",
    "GenerateResult",
    "IdleDetector",
    "InvalidMessageError",
    "LLMAuthError",
    "LLMConfigurationError",
    "LLMContentFilterError",
    "LLMEmptyResponseError",
    "LLMError",
    "LLMModelNotFoundError",
    "LLMQuotaExhaustedError",
    "LLMRateLimitError",
    "LLMTransientError",
    "LiteLLMBackend",
    "Message",
    "ModelConfig",
    "ReservedToolNameError",
    "SessionCallbacks",
    "SessionCompleteInfo",
    "SessionConfig",
    "SessionResult",
    "SessionSuspendInfo",
    "SummarizationError",
    "Suspended",
    "Tool",
    "ToolCallError",
    "ToolCallInfo",
    "ToolCallRequest",
    "ToolCatalog",
    "ToolOutcome",
    "ToolResultEntry",
    "ToolResultInfo",
    "assistant_message",
    "callable_to_openai_tool",
    "classify_error",
    "classify_tool_result",
    "complete",
    "estimate_token_count",
    "file_part",
    "image_part",
    "load_api_keys",
    "run_agent_session",
    "run_agent_session_sync",
    "suspend",
    "text_part",
    "to_provider_messages",
    "tool_call_part",
    "tool_result_part",
    "user_message",
    "validate_messages",
    "wrap_error",
]
