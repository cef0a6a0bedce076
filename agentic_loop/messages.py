"""Canonical message history.

Messages are plain dicts, ``{"role": "user" | "assistant", "content": ...}``,
where content is a string or a list of typed parts:

- ``text``        {"type": "text", "text": str}
- ``image``       {"type": "image", "image": str, "media_type": str | None}
- ``file``        {"type": "file", "data": str, "media_type": str, "filename": str | None}
- ``tool-call``   {"type": "tool-call", "tool_call_id", "tool_name", "input"}   (assistant)
- ``tool-result`` {"type": "tool-result", "tool_call_id", "tool_name", "output", "is_error"}  (user)

Caller-supplied histories are validated with Pydantic models; everything the
loop appends is built with the helpers below so it is valid by construction.
``to_provider_messages`` turns a history into OpenAI chat format for litellm.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from agentic_loop.errors import InvalidMessageError

Message = dict[str, Any]


# ---------------------------------------------------------------------------
# Validation models
# ---------------------------------------------------------------------------


class _Part(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextPart(_Part):
    type: Literal["text"]
    text: str


class ImagePart(_Part):
    type: Literal["image"]
    image: str = Field(min_length=1)
    media_type: str | None = None


class FilePart(_Part):
    type: Literal["file"]
    data: str = Field(min_length=1)
    media_type: str = Field(min_length=1)
    filename: str | None = None


class ToolCallPart(_Part):
    type: Literal["tool-call"]
    tool_call_id: str = Field(min_length=1)
    tool_name: str = Field(min_length=1)
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(_Part):
    type: Literal["tool-result"]
    tool_call_id: str = Field(min_length=1)
    tool_name: str = Field(min_length=1)
    output: Any = None
    is_error: bool = False


UserPart = Annotated[
    TextPart | ImagePart | FilePart | ToolResultPart,
    Field(discriminator="type"),
]
AssistantPart = Annotated[
    TextPart | ToolCallPart,
    Field(discriminator="type"),
]


class UserMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")
    role: Literal["user"]
    content: str | list[UserPart]


class AssistantMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")
    role: Literal["assistant"]
    content: str | list[AssistantPart]


_MESSAGE_ADAPTER: TypeAdapter[Any] = TypeAdapter(
    Annotated[UserMessage | AssistantMessage, Field(discriminator="role")]
)


def validate_message(message: Any) -> Message:
    """Validate and normalize one message payload."""
    try:
        parsed = _MESSAGE_ADAPTER.validate_python(message)
    except ValidationError as exc:
        raise InvalidMessageError(f"Invalid message: {exc}", original=exc) from exc
    return parsed.model_dump()


def validate_messages(messages: Sequence[Any]) -> list[Message]:
    """Validate a whole history (e.g. one being resumed). Returns new dicts."""
    out: list[Message] = []
    for index, message in enumerate(messages):
        try:
            out.append(validate_message(message))
        except InvalidMessageError as exc:
            raise InvalidMessageError(f"Message {index}: {exc}", original=exc.original) from exc
    return out


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def user_message(content: str | list[dict[str, Any]]) -> Message:
    return {"role": "user", "content": content}


def assistant_message(content: str | list[dict[str, Any]]) -> Message:
    return {"role": "assistant", "content": content}


def text_part(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def image_part(image: str, media_type: str | None = None) -> dict[str, Any]:
    return {"type": "image", "image": image, "media_type": media_type}


def file_part(data: str, media_type: str, filename: str | None = None) -> dict[str, Any]:
    return {"type": "file", "data": data, "media_type": media_type, "filename": filename}


def tool_call_part(tool_call_id: str, tool_name: str, input: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "tool-call",
        "tool_call_id": tool_call_id,
        "tool_name": tool_name,
        "input": input,
    }


def tool_result_part(
    tool_call_id: str,
    tool_name: str,
    output: Any,
    *,
    is_error: bool = False,
) -> dict[str, Any]:
    return {
        "type": "tool-result",
        "tool_call_id": tool_call_id,
        "tool_name": tool_name,
        "output": output,
        "is_error": is_error,
    }


# ---------------------------------------------------------------------------
# Text views
# ---------------------------------------------------------------------------


def content_text(message: Message) -> str:
    """Content as text: strings as-is, structured content JSON-serialized."""
    content = message.get("content")
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, default=str)


def last_role(messages: Sequence[Message]) -> str | None:
    if not messages:
        return None
    return messages[-1].get("role")


# ---------------------------------------------------------------------------
# Provider codec (OpenAI chat format, as accepted by litellm)
# ---------------------------------------------------------------------------


def _output_to_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


def _data_url(data: str, media_type: str | None) -> str:
    if data.startswith(("http://", "https://", "data:")):
        return data
    return f"data:{media_type or 'application/octet-stream'};base64,{data}"


def _user_part_to_openai(part: dict[str, Any]) -> dict[str, Any]:
    kind = part.get("type")
    if kind == "text":
        return {"type": "text", "text": part["text"]}
    if kind == "image":
        return {"type": "image_url", "image_url": {"url": _data_url(part["image"], part.get("media_type"))}}
    if kind == "file":
        file_obj: dict[str, Any] = {"file_data": _data_url(part["data"], part.get("media_type"))}
        if part.get("filename"):
            file_obj["filename"] = part["filename"]
        return {"type": "file", "file": file_obj}
    raise InvalidMessageError(f"Unsupported user part type: {kind!r}")


def _convert_user(message: Message) -> list[dict[str, Any]]:
    content = message["content"]
    if isinstance(content, str):
        return [{"role": "user", "content": content}]

    out: list[dict[str, Any]] = []
    other_parts: list[dict[str, Any]] = []
    for part in content:
        if part.get("type") == "tool-result":
            out.append({
                "role": "tool",
                "tool_call_id": part["tool_call_id"],
                "content": _output_to_text(part.get("output")),
            })
        else:
            other_parts.append(_user_part_to_openai(part))
    if other_parts:
        if all(p["type"] == "text" for p in other_parts):
            out.append({"role": "user", "content": "\n".join(p["text"] for p in other_parts)})
        else:
            out.append({"role": "user", "content": other_parts})
    return out


def _convert_assistant(message: Message) -> dict[str, Any]:
    content = message["content"]
    if isinstance(content, str):
        return {"role": "assistant", "content": content}

    texts = [p["text"] for p in content if p.get("type") == "text"]
    tool_calls = [
        {
            "id": p["tool_call_id"],
            "type": "function",
            "function": {
                "name": p["tool_name"],
                "arguments": json.dumps(p.get("input") or {}, ensure_ascii=False),
            },
        }
        for p in content
        if p.get("type") == "tool-call"
    ]
    converted: dict[str, Any] = {"role": "assistant", "content": "\n".join(texts) if texts else None}
    if tool_calls:
        converted["tool_calls"] = tool_calls
    return converted


def to_provider_messages(system_prompt: str, messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert a canonical history into OpenAI chat messages.

    Tool-result parts become ``role: "tool"`` messages placed before any other
    user parts of the same message, so each one directly follows the
    assistant message that requested it.
    """
    out: list[dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    for message in messages:
        role = message.get("role")
        if role == "user":
            out.extend(_convert_user(message))
        elif role == "assistant":
            out.append(_convert_assistant(message))
        else:
            raise InvalidMessageError(f"Unsupported message role: {role!r}")
    return out
