"""Fixed session texts loaded from a YAML file and rendered with Jinja2.

Every message the loop writes into a conversation on its own (the idle
reminder, the retry notice after a backend failure, the summary instruction,
closing messages) lives in ``templates/session.yaml``:

    name: session
    version: "1.0"
    prompts:
      backend_retry: |-
        ERROR: LLM call failed with: {{ error }}

        Please try again.

Usage::

    from agentic_loop.prompts import render_prompt

    text = render_prompt("backend_retry", error="connection reset")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from importlib import resources
from typing import Any

import yaml  # type: ignore[import-untyped]
from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateNotFound

logger = logging.getLogger(__name__)

TEMPLATE_PACKAGE = "agentic_loop.templates"
TEMPLATE_FILE = "session.yaml"


class _YAMLInlineLoader(BaseLoader):
    """Jinja2 loader for inline strings (no filesystem template inheritance)."""

    def get_source(
        self, environment: Environment, template: str
    ) -> tuple[str, str | None, None]:
        raise TemplateNotFound(template)


# Single shared environment. StrictUndefined makes missing vars fail loud.
_env = Environment(loader=_YAMLInlineLoader(), undefined=StrictUndefined)


@lru_cache(maxsize=1)
def load_prompts() -> dict[str, str]:
    """Load the raw (unrendered) prompt templates.

    Raises:
        ValueError: If the YAML structure is invalid (no prompts mapping,
            non-string entries).
    """
    source = resources.files(TEMPLATE_PACKAGE).joinpath(TEMPLATE_FILE).read_text(encoding="utf-8")
    raw = yaml.safe_load(source)

    if not isinstance(raw, dict):
        raise ValueError(f"Prompt YAML must be a mapping, got {type(raw).__name__}")

    prompts = raw.get("prompts")
    if not isinstance(prompts, dict) or not prompts:
        raise ValueError("Prompt YAML missing 'prompts' mapping")

    for key, value in prompts.items():
        if not isinstance(value, str):
            raise ValueError(f"Prompt {key!r} must be a string, got {type(value).__name__}")

    logger.debug("Loaded %d session prompts (version %s)", len(prompts), raw.get("version"))
    return dict(prompts)


def render_prompt(name: str, *, strip: bool = True, **context: Any) -> str:
    """Render one named prompt with Jinja2.

    Args:
        name: Key under ``prompts`` in the YAML file.
        strip: Strip surrounding whitespace from the rendered text.
        **context: Variables to substitute into the template.

    Raises:
        KeyError: If no prompt has that name.
        jinja2.UndefinedError: If a template variable is missing from context.
    """
    prompts = load_prompts()
    if name not in prompts:
        raise KeyError(f"Unknown prompt: {name!r}")
    rendered = _env.from_string(prompts[name]).render(**context)
    return rendered.strip() if strip else rendered


def default_system_prompt() -> str:
    return render_prompt("default_system_prompt")
