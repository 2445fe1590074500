"""
LLMModule -- the single entry point callers use.

Builds one adapter from the configuration, resolves options for every
call (provider defaults < configured defaults < call options < forced
overrides) and delegates. It keeps no per-call state, so concurrent calls
on one instance are independent.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar

from llm_toolkit.config import LLMConfig, merge_with_defaults, module_defaults
from llm_toolkit.conversation import Conversation
from llm_toolkit.errors import APIError
from llm_toolkit.observability.metrics import (
    llm_request_latency,
    llm_requests,
    llm_stream_fragments,
    llm_tokens,
)
from llm_toolkit.providers.base import LLMProvider
from llm_toolkit.providers.factory import create_provider
from llm_toolkit.providers.models import (
    EmbeddingOptions,
    EmbeddingResponse,
    LLMOptions,
    LLMResponse,
    Message,
    OptionsLike,
    merge_options,
)
from llm_toolkit.providers.normalize import StreamCallback

_R = TypeVar("_R")


class LLMModule:
    """
    Facade over one configured provider.

    Construction validates the configuration and raises ConfigurationError
    when the selected backend is missing a required field; a failed
    construction leaves no usable object behind.
    """

    def __init__(
        self,
        config: LLMConfig | Mapping[str, Any] | None = None,
        provider: LLMProvider | None = None,
    ) -> None:
        self._config = merge_with_defaults(config or LLMConfig(), module_defaults())
        self._logger = self._config.logger
        if self._config.debug and isinstance(self._logger, logging.Logger):
            self._logger.setLevel(logging.DEBUG)
        self._provider = provider or create_provider(self._config)

    @classmethod
    def from_env(cls) -> LLMModule:
        return cls(LLMConfig.from_env())

    @property
    def config(self) -> LLMConfig:
        return self._config

    def get_provider_name(self) -> str:
        return self._provider.get_name()

    def merge_options(
        self,
        options: OptionsLike = None,
        overrides: OptionsLike = None,
    ) -> LLMOptions:
        defaults = {"model": self._config.default_model} if self._config.default_model else None
        return merge_options(defaults, self._config.default_options, options, overrides)

    async def send_message(
        self,
        message: str,
        options: OptionsLike = None,
    ) -> LLMResponse:
        merged = self.merge_options(options)
        self._logger.debug(
            "Sending message to LLM (provider=%s, model=%s)",
            self.get_provider_name(), merged.model,
        )
        return await self._observe(
            "send_message", lambda: self._provider.send_message(message, merged)
        )

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: OptionsLike = None,
    ) -> LLMResponse:
        merged = self.merge_options(options)
        self._logger.debug(
            "Sending conversation to LLM (provider=%s, model=%s, messages=%d)",
            self.get_provider_name(), merged.model, len(messages),
        )
        return await self._observe(
            "send_conversation",
            lambda: self._provider.send_conversation(list(messages), merged),
        )

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: OptionsLike = None,
    ) -> LLMResponse:
        merged = self.merge_options(options, {"stream": True})
        name = self.get_provider_name()
        self._logger.debug(
            "Streaming conversation to LLM (provider=%s, model=%s, messages=%d)",
            name, merged.model, len(messages),
        )
        fragments = llm_stream_fragments.labels(provider=name)

        def counted(fragment: str) -> None:
            fragments.inc()
            callback(fragment)

        return await self._observe(
            "stream_conversation",
            lambda: self._provider.stream_conversation(list(messages), counted, merged),
        )

    async def embed(
        self,
        texts: Sequence[str],
        options: EmbeddingOptions | Mapping[str, Any] | None = None,
    ) -> EmbeddingResponse:
        name = self.get_provider_name()
        defaults = {"model": self._config.embedding_model} if self._config.embedding_model else None
        merged = merge_options(defaults, options, into=EmbeddingOptions)
        self._logger.debug(
            "Generating embeddings (provider=%s, model=%s, texts=%d)",
            name, merged.model, len(texts),
        )
        if not self._provider.supports_embeddings():
            raise APIError(
                f"The configured provider '{name}' does not support the embed operation.",
                501,
                {"provider": name},
            )
        return await self._observe("embed", lambda: self._provider.embed(list(texts), merged))

    async def get_available_models(self) -> list[str]:
        return await self._observe("list_models", self._provider.get_available_models)

    def create_conversation(self) -> Conversation:
        return Conversation(self)

    async def aclose(self) -> None:
        await self._provider.aclose()

    async def __aenter__(self) -> LLMModule:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _observe(self, operation: str, call: Callable[[], Awaitable[_R]]) -> _R:
        name = self.get_provider_name()
        start = time.monotonic()
        try:
            result = await call()
        except Exception:
            llm_requests.labels(provider=name, operation=operation, outcome="error").inc()
            raise
        finally:
            llm_request_latency.labels(provider=name, operation=operation).observe(
                time.monotonic() - start
            )
        llm_requests.labels(provider=name, operation=operation, outcome="success").inc()
        usage = getattr(result, "usage", None)
        if usage is not None:
            if usage.prompt_tokens:
                llm_tokens.labels(provider=name, direction="prompt").inc(usage.prompt_tokens)
            if getattr(usage, "completion_tokens", None):
                llm_tokens.labels(provider=name, direction="completion").inc(
                    usage.completion_tokens
                )
        return result
