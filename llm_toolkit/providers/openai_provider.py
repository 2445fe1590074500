"""
OpenAI Chat Completions provider.

Works with any API that speaks the OpenAI protocol when ``endpoint`` is set:
  - OpenAI      (default base URL)
  - Groq        (https://api.groq.com/openai/v1)
  - OpenRouter  (https://openrouter.ai/api/v1)
  - Ollama / LM Studio OpenAI-compatible servers

System instructions travel as a leading system message. Options the common
contract does not know are passed as extra keyword arguments to
``chat.completions.create``.
"""

from __future__ import annotations

from typing import Any, Sequence

from openai import AsyncOpenAI

from llm_toolkit.logging.logger import LoggerInterface
from llm_toolkit.providers.base import LLMProvider
from llm_toolkit.providers.models import (
    EmbeddingOptions,
    EmbeddingResponse,
    LLMOptions,
    LLMResponse,
    Message,
)
from llm_toolkit.providers.normalize import (
    OPENAI_EMBEDDING_USAGE,
    OPENAI_USAGE,
    StreamAccumulator,
    StreamCallback,
    extract_embedding_usage,
    extract_usage,
    split_options,
    to_inline_messages,
    wrap_error,
)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIProvider(LLMProvider):
    """OpenAI adapter built on the async SDK client."""

    name = "openai"
    label = "OpenAI"
    default_embedding_model = DEFAULT_EMBEDDING_MODEL

    def __init__(
        self,
        api_key: str,
        default_model: str,
        logger: LoggerInterface | None = None,
        endpoint: str | None = None,
        embedding_model: str | None = None,
        timeout: float = 120.0,
        client: Any | None = None,
    ) -> None:
        super().__init__(logger)
        self._default_model = default_model
        self._embedding_model = embedding_model
        self._endpoint = endpoint
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=endpoint or None,
            timeout=timeout,
        )
        self._logger.debug(
            "%s provider initialized (model=%s, endpoint=%s)",
            self.label, default_model, endpoint or "default",
        )

    async def get_available_models(self) -> list[str]:
        self._logger.debug("Fetching available %s models", self.label)
        try:
            return [model.id async for model in self._client.models.list()]
        except Exception as exc:
            self._logger.error("Error fetching %s models: %s", self.label, exc)
            raise wrap_error(exc, self.name, self.label) from exc

    def _build_params(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        known, rest = split_options(options)
        params: dict[str, Any] = {
            "model": known["model"] or self._default_model,
            "messages": to_inline_messages(messages, known["system_prompt"]),
            "stream": stream,
        }
        if known["temperature"] is not None:
            params["temperature"] = known["temperature"]
        if known["max_tokens"] is not None:
            params["max_tokens"] = known["max_tokens"]
        if known["response_format"] == "json":
            params["response_format"] = {"type": "json_object"}
        params.update(rest)
        return params

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        params = self._build_params(messages, options, stream=False)
        self._logger.debug(
            "Sending conversation to %s (model=%s, messages=%d)",
            self.label, params["model"], len(params["messages"]),
        )
        try:
            response = await self._client.chat.completions.create(**params)
            return self._normalize_response(response)
        except Exception as exc:
            self._logger.error("Error calling %s API: %s", self.label, exc)
            raise wrap_error(exc, self.name, self.label) from exc

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        params = self._build_params(messages, options, stream=True)
        self._logger.debug(
            "Streaming conversation from %s (model=%s, messages=%d)",
            self.label, params["model"], len(params["messages"]),
        )
        accumulator = StreamAccumulator(callback)
        model = params["model"]
        usage = None
        try:
            stream = await self._client.chat.completions.create(**params)
            async for chunk in stream:
                model = getattr(chunk, "model", None) or model
                # Only sent when the caller passes stream_options.include_usage
                if getattr(chunk, "usage", None) is not None:
                    usage = extract_usage(chunk.usage, OPENAI_USAGE)
                if chunk.choices:
                    accumulator.push(chunk.choices[0].delta.content)
        except Exception as exc:
            self._logger.error(
                "Error streaming from %s API after %d fragment(s): %s",
                self.label, accumulator.fragments, exc,
            )
            raise wrap_error(exc, self.name, self.label) from exc

        self._logger.debug(
            "%s stream finished (%d fragments)", self.label, accumulator.fragments
        )
        return LLMResponse(
            content=accumulator.text,
            model=model,
            usage=usage,
            metadata={"provider": self.name},
        )

    def supports_embeddings(self) -> bool:
        return True

    def _embedding_params(self) -> dict[str, Any]:
        """Request fields this backend needs on every embeddings call."""
        return {}

    async def embed(
        self,
        texts: Sequence[str],
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingResponse:
        options = options or EmbeddingOptions()
        model = options.model or self._embedding_model or self.default_embedding_model
        params: dict[str, Any] = {"model": model, "input": list(texts)}
        params.update(self._embedding_params())
        params.update(options.passthrough())
        self._logger.debug(
            "Generating embeddings with %s (model=%s, texts=%d)",
            self.label, model, len(texts),
        )
        try:
            response = await self._client.embeddings.create(**params)
            return self._normalize_embedding_response(response)
        except Exception as exc:
            self._logger.error("Error calling %s Embeddings API: %s", self.label, exc)
            raise wrap_error(exc, self.name, self.label) from exc

    def _normalize_response(self, response: Any) -> LLMResponse:
        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        return LLMResponse(
            content=content,
            model=response.model,
            usage=extract_usage(response.usage, OPENAI_USAGE),
            metadata={
                "provider": self.name,
                "id": response.id,
                "created": response.created,
                "finish_reason": response.choices[0].finish_reason if response.choices else None,
            },
        )

    def _normalize_embedding_response(self, response: Any) -> EmbeddingResponse:
        data = sorted(response.data, key=lambda item: item.index)
        return EmbeddingResponse(
            embeddings=[list(item.embedding) for item in data],
            model=response.model,
            usage=extract_embedding_usage(response.usage, OPENAI_EMBEDDING_USAGE),
            metadata={"provider": self.name},
        )

    async def aclose(self) -> None:
        await self._client.close()
