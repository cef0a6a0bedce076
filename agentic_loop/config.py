"""Typed runtime configuration for agentic_loop."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Mapping

from agentic_loop.errors import LLMConfigurationError

if TYPE_CHECKING:
    from agentic_loop.callbacks import SessionCallbacks

logger = logging.getLogger(__name__)

PROVIDER_ENV = "AGENTIC_LOOP_PROVIDER"
MODEL_ENV = "AGENTIC_LOOP_MODEL"
KEYS_FILE_ENV = "AGENTIC_LOOP_KEYS_FILE"
OLLAMA_BASE_URL_ENV = "OLLAMA_BASE_URL"
DEFAULT_KEYS_FILE = Path.home() / ".secrets" / "api_keys.env"

DEFAULT_MAX_TURNS: int = 50
"""Turn budget of a session when the caller does not set one."""

DEFAULT_IDLE_THRESHOLD: int = 2
"""Consecutive idle turns before the agent is reminded to finish."""

DEFAULT_REQUEST_TIMEOUT: float = 60.0
"""Seconds litellm waits on a single HTTP request."""

Provider = Literal["openai", "anthropic", "ollama"]

_PROVIDER_PREFIXES: dict[str, str] = {
    "openai": "openai",
    "anthropic": "anthropic",
    "ollama": "ollama_chat",
}

_PROVIDER_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def load_api_keys(path: str | Path | None = None) -> int:
    """Load ``KEY=value`` lines from a keys file into os.environ.

    Reads ``path``, else AGENTIC_LOOP_KEYS_FILE, else ~/.secrets/api_keys.env.
    Skips comments, empty lines, and keys already set in the environment.
    Returns the number of keys loaded.
    """
    keys_file = Path(path or os.environ.get(KEYS_FILE_ENV, str(DEFAULT_KEYS_FILE)))
    if not keys_file.is_file():
        return 0
    loaded = 0
    for line in keys_file.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[7:]
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip().strip("\"'")
        if key and key not in os.environ:
            os.environ[key] = value
            loaded += 1
    if loaded:
        logger.debug("agentic_loop: loaded %d API keys from %s", loaded, keys_file)
    return loaded


@dataclass(frozen=True)
class ModelConfig:
    """Which model a session talks to and how to reach it.

    Attributes:
        provider: "openai", "anthropic" or "ollama".
        model: Provider model name (e.g. "gpt-4o", "qwen2.5:7b").
        api_key: Key for OpenAI/Anthropic. Falls back to the provider's
            standard environment variable when omitted.
        base_url: Optional API base (Ollama server, proxies).
        request_timeout: Per-request timeout handed to litellm.
    """

    provider: Provider
    model: str
    api_key: str | None = field(default=None, repr=False)
    base_url: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def litellm_model(self) -> str:
        """Provider-qualified model string understood by litellm."""
        prefix = _PROVIDER_PREFIXES.get(self.provider)
        if prefix is None:
            raise LLMConfigurationError(f"Unknown provider: {self.provider}")
        if self.model.startswith(f"{prefix}/"):
            return self.model
        return f"{prefix}/{self.model}"

    def resolved_api_key(self) -> str | None:
        if self.api_key:
            return self.api_key
        env_name = _PROVIDER_KEY_ENV.get(self.provider)
        return os.environ.get(env_name) if env_name else None

    def validate(self) -> None:
        """Raise LLMConfigurationError when the config cannot reach a model."""
        if self.provider not in _PROVIDER_PREFIXES:
            raise LLMConfigurationError(f"Unknown provider: {self.provider}")
        if not self.model.strip():
            raise LLMConfigurationError("Model name must not be empty.")
        if self.provider in _PROVIDER_KEY_ENV and not self.resolved_api_key():
            raise LLMConfigurationError(
                f"API key is required for {self.provider} provider. "
                f"Pass it in ModelConfig or set {_PROVIDER_KEY_ENV[self.provider]}."
            )

    def completion_kwargs(self) -> dict[str, Any]:
        """Connection kwargs for litellm.acompletion."""
        kwargs: dict[str, Any] = {"timeout": self.request_timeout}
        api_key = self.resolved_api_key()
        if api_key:
            kwargs["api_key"] = api_key
        if self.base_url:
            kwargs["api_base"] = self.base_url
        return kwargs

    @classmethod
    def from_env(cls, *, keys_file: str | Path | None = None) -> "ModelConfig":
        """Build a config from environment variables (after loading the keys file)."""
        load_api_keys(keys_file)
        provider_raw = os.environ.get(PROVIDER_ENV, "ollama").strip().lower()
        if provider_raw not in _PROVIDER_PREFIXES:
            logger.warning(
                "Invalid %s=%r; expected openai/anthropic/ollama. Defaulting to ollama.",
                PROVIDER_ENV,
                provider_raw,
            )
            provider_raw = "ollama"
        model = os.environ.get(MODEL_ENV, "").strip()
        if not model:
            raise LLMConfigurationError(f"{MODEL_ENV} is not set.")
        base_url = os.environ.get(OLLAMA_BASE_URL_ENV) if provider_raw == "ollama" else None
        return cls(
            provider=provider_raw,  # type: ignore[arg-type]
            model=model,
            base_url=base_url,
        )


@dataclass
class SessionConfig:
    """Everything one agent session needs besides the model.

    Attributes:
        system_prompt: System prompt for the agent. Defaults to
            DEFAULT_SYSTEM_PROMPT when empty.
        tools: Python callables, ``Tool`` objects, or a name → callable/Tool
            mapping. ``task_complete`` is added automatically.
        session_id: Identity passed to every callback. Generated when omitted.
        messages: History to resume from. Takes precedence over
            ``initial_message``.
        initial_message: First user message of a new session.
        max_turns: Turn budget before the session is forced to end.
        token_limit: Approximate history size that triggers summarization.
        llm_timeout: Seconds a single backend call may take.
        tool_timeout: Seconds a single tool invocation may take.
        callbacks: Observability and summarization hooks.
        logger: Logger for this session; the package logger when omitted.
        metadata: Free-form data logged at start and returned on the result.
    """

    system_prompt: str = ""
    tools: Any = None
    session_id: str | None = None
    messages: list[dict[str, Any]] | None = None
    initial_message: str | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    token_limit: int | None = None
    llm_timeout: float | None = None
    tool_timeout: float | None = None
    callbacks: SessionCallbacks | None = None
    logger: logging.Logger | logging.LoggerAdapter | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    idle_threshold: int = DEFAULT_IDLE_THRESHOLD


def describe_config(model_config: ModelConfig, session_config: SessionConfig) -> dict[str, Any]:
    """Loggable summary of a session's configuration (no secrets)."""
    summary: dict[str, Any] = {
        "provider": model_config.provider,
        "model": model_config.model,
        "max_turns": session_config.max_turns,
    }
    if session_config.token_limit:
        summary["token_limit"] = session_config.token_limit
    if session_config.llm_timeout:
        summary["llm_timeout"] = session_config.llm_timeout
    if session_config.tool_timeout:
        summary["tool_timeout"] = session_config.tool_timeout
    return summary
