"""
Provider factory -- turns an LLMConfig into exactly one adapter.

Supported providers:

  openai           OpenAI API          -- needs api_key, default_model
                                          endpoint optional (any OpenAI-compatible URL)
  anthropic        Anthropic API       -- needs api_key, default_model
  ollama           Ollama server       -- needs endpoint, default_model
  ubc-llm-sandbox  UBC LiteLLM proxy   -- needs api_key, endpoint, default_model
  mock             Built-in deterministic mock, no credentials

Validation happens before any client is built, so a misconfigured backend
fails with ConfigurationError without touching the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from llm_toolkit.errors import ConfigurationError
from llm_toolkit.providers.base import LLMProvider

if TYPE_CHECKING:
    from llm_toolkit.config import LLMConfig

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[["LLMConfig"], LLMProvider]


@dataclass(frozen=True)
class ProviderSpec:
    builder: ProviderBuilder
    required: tuple[str, ...]
    display_name: str


def _build_openai(cfg: LLMConfig) -> LLMProvider:
    from llm_toolkit.providers.openai_provider import OpenAIProvider

    return OpenAIProvider(
        cfg.api_key,
        cfg.default_model,
        logger=cfg.logger,
        endpoint=cfg.endpoint,
        embedding_model=cfg.embedding_model,
        timeout=cfg.timeout,
    )


def _build_anthropic(cfg: LLMConfig) -> LLMProvider:
    from llm_toolkit.providers.anthropic_provider import AnthropicProvider

    return AnthropicProvider(
        cfg.api_key,
        cfg.default_model,
        logger=cfg.logger,
        endpoint=cfg.endpoint,
        timeout=cfg.timeout,
    )


def _build_ollama(cfg: LLMConfig) -> LLMProvider:
    from llm_toolkit.providers.ollama_provider import OllamaProvider

    return OllamaProvider(
        cfg.endpoint,
        cfg.default_model,
        logger=cfg.logger,
        embedding_model=cfg.embedding_model,
        timeout=cfg.timeout,
    )


def _build_sandbox(cfg: LLMConfig) -> LLMProvider:
    from llm_toolkit.providers.sandbox_provider import UbcLlmSandboxProvider

    return UbcLlmSandboxProvider(
        cfg.api_key,
        cfg.endpoint,
        cfg.default_model,
        logger=cfg.logger,
        embedding_model=cfg.embedding_model,
        timeout=cfg.timeout,
    )


def _build_mock(cfg: LLMConfig) -> LLMProvider:
    from llm_toolkit.providers.mock_provider import MockProvider

    return MockProvider(
        cfg.default_model,
        logger=cfg.logger,
        embedding_model=cfg.embedding_model,
    )


_PROVIDERS: dict[str, ProviderSpec] = {
    "openai": ProviderSpec(_build_openai, ("api_key", "default_model"), "OpenAI"),
    "anthropic": ProviderSpec(_build_anthropic, ("api_key", "default_model"), "Anthropic"),
    "ollama": ProviderSpec(_build_ollama, ("endpoint", "default_model"), "Ollama"),
    "ubc-llm-sandbox": ProviderSpec(
        _build_sandbox, ("api_key", "endpoint", "default_model"), "UBC LLM Sandbox"
    ),
    "mock": ProviderSpec(_build_mock, (), "Mock"),
}


def register_provider(
    kind: str,
    builder: ProviderBuilder,
    required: tuple[str, ...] = ("default_model",),
    display_name: str | None = None,
) -> None:
    """Register or overwrite a backend kind."""
    _PROVIDERS[kind.lower()] = ProviderSpec(builder, required, display_name or kind)


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def validate_config(cfg: LLMConfig) -> ProviderSpec:
    """Return the spec for ``cfg.provider`` or raise ConfigurationError."""
    if not cfg.provider:
        raise ConfigurationError(
            "provider is required. "
            f"Available: {', '.join(available_providers())}"
        )
    spec = _PROVIDERS.get(cfg.provider.lower())
    if spec is None:
        raise ConfigurationError(
            f"Unsupported provider '{cfg.provider}'. "
            f"Available: {', '.join(available_providers())}",
            {"provider": cfg.provider},
        )
    for field_name in spec.required:
        if not getattr(cfg, field_name):
            raise ConfigurationError(
                f"{field_name} is required for {spec.display_name} provider",
                {"provider": cfg.provider, "field": field_name},
            )
    return spec


def create_provider(cfg: LLMConfig) -> LLMProvider:
    spec = validate_config(cfg)
    provider = spec.builder(cfg)
    logger.info(
        "LLM provider initialized: %s (model=%s)",
        provider.get_name(),
        cfg.default_model or "provider-default",
    )
    return provider
