"""Structured error types for agentic_loop.

Backend failures are classified into ``LLMError`` subtypes before they reach
``on_error`` callbacks, so callers can branch on the type instead of parsing
raw litellm exceptions:

    from agentic_loop.errors import LLMQuotaExhaustedError

    async def on_error(session_id, info):
        if isinstance(info.error, LLMQuotaExhaustedError):
            # Retrying inside the session won't help
            alert(session_id)
"""

from __future__ import annotations

from typing import Any


class AgenticLoopError(Exception):
    """Base for all agentic_loop errors."""

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original


# ---------------------------------------------------------------------------
# Backend (LLM) errors
# ---------------------------------------------------------------------------


class LLMError(AgenticLoopError):
    """Base for generation backend failures."""


class LLMRateLimitError(LLMError):
    """Transient rate limit (429)."""


class LLMQuotaExhaustedError(LLMError):
    """Permanent quota/billing exhaustion."""


class LLMAuthError(LLMError):
    """Authentication failed (401/403): API key invalid or forbidden."""


class LLMContentFilterError(LLMError):
    """Content policy violation; the request was blocked."""


class LLMTransientError(LLMError):
    """Server error (500/502/503), timeout, connection."""


class BackendTimeoutError(LLMTransientError):
    """The backend call did not finish within ``llm_timeout``."""


class LLMEmptyResponseError(LLMError):
    """Model returned neither text nor tool calls."""


class LLMModelNotFoundError(LLMError):
    """Model doesn't exist (404)."""


class LLMConfigurationError(LLMError):
    """Model configuration is unusable (unknown provider, missing key)."""


# ---------------------------------------------------------------------------
# Session errors
# ---------------------------------------------------------------------------


class ToolCallError(AgenticLoopError):
    """A tool call request was malformed and has been dropped."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str = "",
        tool_call_id: str = "",
        original: Exception | None = None,
    ) -> None:
        super().__init__(message, original=original)
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id


class ReservedToolNameError(AgenticLoopError):
    """A caller tool collides with a name the session reserves for itself."""


class InvalidMessageError(AgenticLoopError):
    """A caller-supplied message history does not have the canonical shape."""


class SummarizationError(AgenticLoopError):
    """History summarization failed; the history was left untouched."""


# Patterns that indicate permanent quota exhaustion (not transient rate limit).
_QUOTA_PATTERNS = [
    "quota",
    "billing",
    "insufficient",
    "exceeded your current",
    "plan and billing",
    "account deactivated",
    "account suspended",
]


def _litellm_error_types(module: Any, names: tuple[str, ...]) -> tuple[type[BaseException], ...]:
    """Resolve optional litellm exception classes without static attribute coupling."""
    out: list[type[BaseException]] = []
    for name in names:
        candidate = getattr(module, name, None)
        if isinstance(candidate, type) and issubclass(candidate, BaseException):
            out.append(candidate)
    return tuple(out)


def classify_error(error: BaseException) -> type[LLMError]:
    """Classify any exception into an LLMError subtype.

    Uses litellm exception types first, falls back to string matching.
    """
    import litellm as _lt

    if isinstance(error, TimeoutError):
        return BackendTimeoutError

    auth_types = _litellm_error_types(_lt, ("AuthenticationError", "PermissionDeniedError"))
    if auth_types and isinstance(error, auth_types):
        return LLMAuthError

    not_found_types = _litellm_error_types(_lt, ("NotFoundError",))
    if not_found_types and isinstance(error, not_found_types):
        return LLMModelNotFoundError

    content_types = _litellm_error_types(_lt, ("ContentPolicyViolationError",))
    if content_types and isinstance(error, content_types):
        return LLMContentFilterError

    budget_types = _litellm_error_types(_lt, ("BudgetExceededError",))
    if budget_types and isinstance(error, budget_types):
        return LLMQuotaExhaustedError

    rate_types = _litellm_error_types(_lt, ("RateLimitError",))
    if rate_types and isinstance(error, rate_types):
        error_str = str(error).lower()
        if any(p in error_str for p in _QUOTA_PATTERNS):
            return LLMQuotaExhaustedError
        return LLMRateLimitError

    transient_types = _litellm_error_types(
        _lt,
        (
            "Timeout",
            "InternalServerError",
            "ServiceUnavailableError",
            "APIConnectionError",
            "BadGatewayError",
        ),
    )
    if transient_types and isinstance(error, transient_types):
        return LLMTransientError

    # Fallback: string pattern matching
    error_str = str(error).lower()

    if any(p in error_str for p in _QUOTA_PATTERNS):
        return LLMQuotaExhaustedError
    if "401" in error_str or "authentication" in error_str or "unauthorized" in error_str:
        return LLMAuthError
    if "403" in error_str or "forbidden" in error_str or "permission" in error_str:
        return LLMAuthError
    if "404" in error_str or "not found" in error_str or "does not exist" in error_str:
        return LLMModelNotFoundError
    if "content" in error_str and ("policy" in error_str or "filter" in error_str):
        return LLMContentFilterError
    if "rate" in error_str and "limit" in error_str:
        return LLMRateLimitError
    if any(p in error_str for p in ("timeout", "timed out", "connection", "500", "502", "503", "server error")):
        return LLMTransientError

    return LLMError


def wrap_error(error: BaseException) -> LLMError:
    """Wrap an exception in the appropriate LLMError subclass.

    If the error is already an LLMError, returns it unchanged.
    """
    if isinstance(error, LLMError):
        return error
    cls = classify_error(error)
    message = str(error) or type(error).__name__
    return cls(message, original=error if isinstance(error, Exception) else None)
