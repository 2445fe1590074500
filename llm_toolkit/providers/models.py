"""Data models for the provider layer."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Mapping, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One conversation turn. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: str | None = None

    @classmethod
    def now(cls, role: Role | str, content: str) -> Message:
        return cls(
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


class _OpenOptions(BaseModel):
    """Typed known fields plus an ordered bag of passthrough values."""

    model_config = ConfigDict(extra="allow")

    def passthrough(self) -> dict[str, Any]:
        """Return the unrecognized fields, in insertion order."""
        return dict(self.model_extra or {})

    def explicit(self) -> dict[str, Any]:
        """Return every field the caller actually set, passthrough included."""
        values = {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name in self.model_fields_set
        }
        values.update(self.passthrough())
        return values


class LLMOptions(_OpenOptions):
    """
    Request-scoped options.

    The typed fields are the ones every adapter understands. Any other
    keyword is kept, in the order given, as a passthrough value that the
    adapter forwards to its backend without looking at it:

        LLMOptions(temperature=0.2, num_ctx=8192)
    """

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
    response_format: Literal["text", "json"] | None = None
    stream: bool | None = None


KNOWN_OPTION_FIELDS = frozenset(LLMOptions.model_fields)

OptionsLike = Union[_OpenOptions, Mapping[str, Any], None]
_O = TypeVar("_O", bound=_OpenOptions)


def merge_options(*layers: OptionsLike, into: type[_O] = LLMOptions) -> _O:
    """
    Shallow-merge option layers, later layers winning key by key.

    Only fields a layer explicitly sets take part, so an unset field never
    clears a value from a lower layer. Values are replaced whole; nested
    structures are not merged.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        if isinstance(layer, _OpenOptions):
            merged.update(layer.explicit())
        else:
            merged.update(layer)
    return into(**merged)


class Usage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class LLMResponse(BaseModel):
    content: str
    model: str
    usage: Usage | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class EmbeddingOptions(_OpenOptions):
    """Options for embedding requests; unknown keys are passthrough values."""

    model: str | None = None
    truncate: bool | None = None


class EmbeddingUsage(BaseModel):
    prompt_tokens: int | None = None
    total_tokens: int | None = None


class EmbeddingResponse(BaseModel):
    embeddings: list[list[float]]
    model: str
    usage: EmbeddingUsage | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
