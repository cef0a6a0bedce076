"""Tests for the fixed session prompts and their Jinja2 rendering."""

import textwrap
from pathlib import Path

import jinja2
import pytest

import agentic_loop.prompts as prompts_mod
from agentic_loop.prompts import default_system_prompt, load_prompts, render_prompt


@pytest.fixture()
def prompt_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point the loader at a temporary templates directory."""
    monkeypatch.setattr(prompts_mod.resources, "files", lambda package: tmp_path)
    load_prompts.cache_clear()
    yield tmp_path
    load_prompts.cache_clear()


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


class TestPackagedPrompts:
    """The texts the loop writes into conversations."""

    def test_backend_retry(self) -> None:
        text = render_prompt("backend_retry", error="connection reset")
        assert text == "ERROR: LLM call failed with: connection reset\n\nPlease try again."

    def test_resumed_initial_message(self) -> None:
        assert render_prompt("resumed_initial_message", count=4) == "Resumed from 4 previous messages"

    def test_fixed_texts(self) -> None:
        assert render_prompt("default_initial_message") == "Begin working on your assigned task."
        assert render_prompt("continue_message") == "Please continue."
        assert render_prompt("task_complete_closing") == "Task marked as complete. Session ending."
        assert render_prompt("summary_marker") == "Previous conversation summary:"

    def test_suspended_closing(self) -> None:
        text = render_prompt("suspended_closing", reason="waiting_for_approval")
        assert text == "Session suspended: waiting_for_approval. Waiting for external input."

    def test_max_turns_marker_keeps_leading_newlines(self) -> None:
        assert render_prompt("max_turns_marker", strip=False) == "\n\n(Session ended - max turns reached)"

    def test_idle_reminder_mentions_task_complete(self) -> None:
        text = render_prompt("idle_reminder")
        assert text.startswith("REMINDER:")
        assert "task_complete" in text

    def test_summary_instruction_embeds_conversation(self) -> None:
        text = render_prompt("summary_instruction", conversation="user: hi\n\nassistant: hello")
        assert text.startswith("Summarize the following conversation")
        assert text.endswith("user: hi\n\nassistant: hello")

    def test_default_system_prompt(self) -> None:
        assert "task_complete" in default_system_prompt()


class TestRenderPrompt:
    def test_unknown_name(self) -> None:
        with pytest.raises(KeyError, match="Unknown prompt"):
            render_prompt("does_not_exist")

    def test_missing_variable_raises(self) -> None:
        with pytest.raises(jinja2.UndefinedError):
            render_prompt("backend_retry")

    def test_jinja_conditional(self, prompt_dir: Path) -> None:
        _write(
            prompt_dir / "session.yaml",
            """\
            name: session
            version: "1.0"
            prompts:
              status: "{% if done %}Done{% else %}Working{% endif %}: {{ task }}"
            """,
        )
        assert render_prompt("status", done=True, task="report") == "Done: report"
        assert render_prompt("status", done=False, task="report") == "Working: report"


class TestLoadPrompts:
    def test_not_a_mapping(self, prompt_dir: Path) -> None:
        _write(prompt_dir / "session.yaml", "- just\n- a list\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_prompts()

    def test_missing_prompts(self, prompt_dir: Path) -> None:
        _write(prompt_dir / "session.yaml", "name: session\n")
        with pytest.raises(ValueError, match="missing 'prompts'"):
            load_prompts()

    def test_non_string_prompt(self, prompt_dir: Path) -> None:
        _write(
            prompt_dir / "session.yaml",
            """\
            prompts:
              count: 3
            """,
        )
        with pytest.raises(ValueError, match="must be a string"):
            load_prompts()
