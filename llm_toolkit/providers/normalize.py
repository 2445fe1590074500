"""
Normalization helpers shared by all provider adapters.

Adapters differ in field names, not in logic: which option fields are
standard, where the system prompt goes, which keys hold token counts, and
how a failure is reported. Everything here is parameterized by those
differences so each adapter only declares its mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from llm_toolkit.errors import APIError
from llm_toolkit.providers.models import (
    KNOWN_OPTION_FIELDS,
    EmbeddingUsage,
    LLMOptions,
    Message,
    Role,
    Usage,
)

StreamCallback = Callable[[str], None]


def split_options(options: LLMOptions | None) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Split options into (known, rest).

    ``known`` holds the standard fields, set or not. ``rest`` holds the
    passthrough fields exactly as given, never a standard field.
    """
    options = options or LLMOptions()
    known = {name: getattr(options, name) for name in KNOWN_OPTION_FIELDS}
    rest = {
        key: value
        for key, value in options.passthrough().items()
        if key not in KNOWN_OPTION_FIELDS
    }
    return known, rest


def has_system_message(messages: Sequence[Message]) -> bool:
    return any(msg.role == Role.SYSTEM for msg in messages)


def to_inline_messages(
    messages: Sequence[Message],
    system_prompt: str | None = None,
) -> list[dict[str, str]]:
    """
    Build a backend message list that carries system instructions in-line.

    ``system_prompt`` becomes a leading system message only when the
    conversation has none. The caller's sequence is not modified.
    """
    payload = [{"role": msg.role.value, "content": msg.content} for msg in messages]
    if system_prompt and not has_system_message(messages):
        payload.insert(0, {"role": Role.SYSTEM.value, "content": system_prompt})
    return payload


def to_top_level_system(
    messages: Sequence[Message],
    system_prompt: str | None = None,
) -> tuple[str | None, list[dict[str, str]]]:
    """
    Build (system, messages) for backends with a dedicated system parameter.

    System-role messages are pulled out of the list and joined into the
    parameter; they never appear in both places.
    """
    system_parts = [msg.content for msg in messages if msg.role == Role.SYSTEM]
    payload = [
        {"role": msg.role.value, "content": msg.content}
        for msg in messages
        if msg.role != Role.SYSTEM
    ]
    if system_parts:
        return "\n\n".join(system_parts), payload
    return (system_prompt or None), payload


@dataclass(frozen=True)
class UsageFields:
    """Names of the token counters in one backend's response."""

    prompt: str | None
    completion: str | None = None
    total: str | None = None


OPENAI_USAGE = UsageFields("prompt_tokens", "completion_tokens", "total_tokens")
ANTHROPIC_USAGE = UsageFields("input_tokens", "output_tokens")
OLLAMA_USAGE = UsageFields("prompt_eval_count", "eval_count")
OPENAI_EMBEDDING_USAGE = UsageFields("prompt_tokens", total="total_tokens")


def _field(source: Any, name: str | None) -> Any:
    if source is None or name is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def _read_counts(source: Any, fields: UsageFields) -> tuple[Any, Any, Any]:
    prompt = _field(source, fields.prompt)
    completion = _field(source, fields.completion)
    total = _field(source, fields.total)
    if total is None and fields.total is None and prompt is not None and completion is not None:
        total = prompt + completion
    return prompt, completion, total


def extract_usage(source: Any, fields: UsageFields) -> Usage | None:
    """
    Read token counts using ``fields``. Returns None when nothing is reported.

    The total is derived only when the backend has no total field and both
    other counts are present.
    """
    prompt, completion, total = _read_counts(source, fields)
    if prompt is None and completion is None and total is None:
        return None
    return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def extract_embedding_usage(source: Any, fields: UsageFields) -> EmbeddingUsage | None:
    prompt, _, total = _read_counts(source, fields)
    if prompt is None and total is None:
        return None
    return EmbeddingUsage(prompt_tokens=prompt, total_tokens=total)


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def wrap_error(
    exc: BaseException,
    provider: str,
    label: str,
    **details: Any,
) -> APIError:
    """
    Re-wrap any failure as an APIError tagged with ``provider``.

    APIErrors pass through untouched. The backend status is kept when the
    exception exposes one, otherwise the code is 500.
    """
    if isinstance(exc, APIError):
        return exc

    status = _status_of(exc)
    info: dict[str, Any] = {
        "provider": provider,
        "type": type(exc).__name__,
        "original_error": exc,
    }
    for attr in ("code", "param"):
        value = getattr(exc, attr, None)
        if value is not None:
            info[attr] = value
    info.update(details)

    if status is not None:
        message = f"{label} API Error: {exc}"
    else:
        message = f"{label} Provider Error: {str(exc) or type(exc).__name__}"
    return APIError(message, status or 500, info)


class StreamAccumulator:
    """Forward each fragment to the callback as it arrives and keep the total."""

    def __init__(self, callback: StreamCallback) -> None:
        self._callback = callback
        self._parts: list[str] = []

    def push(self, fragment: str | None) -> None:
        if not fragment:
            return
        self._parts.append(fragment)
        self._callback(fragment)

    @property
    def fragments(self) -> int:
        return len(self._parts)

    @property
    def text(self) -> str:
        return "".join(self._parts)
