from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from llm_toolkit.logging.logger import LoggerInterface, get_logger
from llm_toolkit.providers.models import LLMOptions

DEFAULT_TIMEOUT_S = 120.0


@dataclass(frozen=True)
class LLMConfig:
    """
    Settings consumed once, when an LLMModule is constructed.

    Which fields are required depends on ``provider``; see
    llm_toolkit.providers.factory for the table.
    """

    provider: str | None = None
    api_key: str | None = None
    endpoint: str | None = None
    default_model: str | None = None
    embedding_model: str | None = None
    default_options: LLMOptions | None = None
    logger: LoggerInterface | None = None
    timeout: float | None = None
    debug: bool = False

    @classmethod
    def from_env(cls) -> LLMConfig:
        default_options: dict[str, Any] = {}
        if os.environ.get("LLM_TEMPERATURE"):
            default_options["temperature"] = float(os.environ["LLM_TEMPERATURE"])
        if os.environ.get("LLM_MAX_TOKENS"):
            default_options["max_tokens"] = int(os.environ["LLM_MAX_TOKENS"])

        return cls(
            provider=os.environ.get("LLM_PROVIDER", "openai").strip().lower(),
            api_key=os.environ.get("LLM_API_KEY") or None,
            endpoint=os.environ.get("LLM_ENDPOINT") or None,
            default_model=os.environ.get("LLM_DEFAULT_MODEL") or None,
            embedding_model=os.environ.get("LLM_EMBEDDING_MODEL") or None,
            default_options=LLMOptions(**default_options) if default_options else None,
            timeout=float(os.environ.get("LLM_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_S)),
            debug=os.environ.get("DEBUG", "").lower() == "true",
        )


def module_defaults() -> dict[str, Any]:
    return {
        "logger": get_logger("llm_toolkit"),
        "timeout": DEFAULT_TIMEOUT_S,
    }


def merge_with_defaults(
    config: LLMConfig | Mapping[str, Any],
    defaults: Mapping[str, Any],
) -> LLMConfig:
    """Fill every field the caller left as None from ``defaults``."""
    if not isinstance(config, LLMConfig):
        config = LLMConfig(**config)
    missing = {
        f.name: defaults[f.name]
        for f in fields(config)
        if getattr(config, f.name) is None and f.name in defaults
    }
    return replace(config, **missing)
