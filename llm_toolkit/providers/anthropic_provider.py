"""
Anthropic Messages API provider.

Anthropic takes system instructions as a top-level ``system`` parameter and
rejects system-role entries in ``messages``, so every system message is
lifted out of the conversation before sending. ``max_tokens`` is mandatory
on this API and defaults to 4096. There is no embeddings endpoint.
"""

from __future__ import annotations

from typing import Any, Sequence

from anthropic import AsyncAnthropic

from llm_toolkit.logging.logger import LoggerInterface
from llm_toolkit.providers.base import LLMProvider
from llm_toolkit.providers.models import LLMOptions, LLMResponse, Message
from llm_toolkit.providers.normalize import (
    ANTHROPIC_USAGE,
    StreamAccumulator,
    StreamCallback,
    extract_usage,
    split_options,
    to_top_level_system,
    wrap_error,
)

DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(LLMProvider):
    """Claude adapter built on the async SDK client."""

    name = "anthropic"
    label = "Anthropic"

    def __init__(
        self,
        api_key: str,
        default_model: str,
        logger: LoggerInterface | None = None,
        endpoint: str | None = None,
        timeout: float = 120.0,
        client: Any | None = None,
    ) -> None:
        super().__init__(logger)
        self._default_model = default_model
        self._client = client or AsyncAnthropic(
            api_key=api_key,
            base_url=endpoint or None,
            timeout=timeout,
        )
        self._logger.debug("Anthropic provider initialized (model=%s)", default_model)

    async def get_available_models(self) -> list[str]:
        self._logger.debug("Fetching available Anthropic models")
        try:
            # Iterating the page object follows every next page
            model_ids = [info.id async for info in self._client.models.list()]
        except Exception as exc:
            self._logger.error("Error fetching Anthropic models: %s", exc)
            raise wrap_error(exc, self.name, self.label) from exc
        self._logger.debug("Found %d Anthropic models", len(model_ids))
        return model_ids

    def _build_params(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        known, rest = split_options(options)
        system, anthropic_messages = to_top_level_system(messages, known["system_prompt"])
        params: dict[str, Any] = {
            "model": known["model"] or self._default_model,
            "messages": anthropic_messages,
            "max_tokens": known["max_tokens"] or DEFAULT_MAX_TOKENS,
            "stream": stream,
        }
        if system:
            params["system"] = system
        if known["temperature"] is not None:
            params["temperature"] = known["temperature"]
        params.update(rest)
        return params

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        params = self._build_params(messages, options, stream=False)
        self._logger.debug(
            "Sending conversation to Anthropic (model=%s, messages=%d, system=%s)",
            params["model"], len(params["messages"]), "system" in params,
        )
        try:
            response = await self._client.messages.create(**params)
            return self._normalize_response(response)
        except Exception as exc:
            self._logger.error("Error sending conversation to Anthropic: %s", exc)
            raise wrap_error(exc, self.name, self.label) from exc

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        params = self._build_params(messages, options, stream=True)
        self._logger.debug(
            "Streaming conversation from Anthropic (model=%s, messages=%d)",
            params["model"], len(params["messages"]),
        )
        accumulator = StreamAccumulator(callback)
        model = params["model"]
        counts: dict[str, int] = {}
        metadata: dict[str, Any] = {"provider": self.name}
        try:
            stream = await self._client.messages.create(**params)
            async for event in stream:
                if event.type == "content_block_delta":
                    if event.delta.type == "text_delta":
                        accumulator.push(event.delta.text)
                elif event.type == "message_start":
                    model = event.message.model or model
                    metadata["id"] = event.message.id
                    _collect_counts(counts, event.message.usage)
                elif event.type == "message_delta":
                    metadata["stop_reason"] = event.delta.stop_reason
                    _collect_counts(counts, event.usage)
        except Exception as exc:
            self._logger.error(
                "Error streaming conversation from Anthropic after %d fragment(s): %s",
                accumulator.fragments, exc,
            )
            raise wrap_error(exc, self.name, self.label) from exc

        self._logger.debug("Anthropic stream finished (%d fragments)", accumulator.fragments)
        return LLMResponse(
            content=accumulator.text,
            model=model,
            usage=extract_usage(counts, ANTHROPIC_USAGE),
            metadata=metadata,
        )

    def _normalize_response(self, response: Any) -> LLMResponse:
        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        return LLMResponse(
            content=text,
            model=response.model,
            usage=extract_usage(response.usage, ANTHROPIC_USAGE),
            metadata={
                "provider": self.name,
                "id": response.id,
                "stop_reason": response.stop_reason,
                "stop_sequence": response.stop_sequence,
            },
        )

    async def aclose(self) -> None:
        await self._client.close()


def _collect_counts(counts: dict[str, int], usage: Any) -> None:
    for name in ("input_tokens", "output_tokens"):
        value = getattr(usage, name, None)
        if value is not None:
            counts[name] = value
