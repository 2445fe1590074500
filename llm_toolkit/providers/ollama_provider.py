"""
Ollama native API provider.

Talks to a local or self-hosted Ollama server over HTTP:
  POST /api/chat   chat completion, NDJSON when streaming
  GET  /api/tags   installed models
  POST /api/embed  batch embeddings

Generation settings live in the request's ``options`` object
(``temperature``, ``num_predict``, ``num_ctx``...), so unrecognized options
are merged there. Token counts arrive as ``prompt_eval_count`` and
``eval_count``, on streams only in the final ``done`` chunk.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import httpx

from llm_toolkit.errors import APIError
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
    OLLAMA_USAGE,
    StreamAccumulator,
    StreamCallback,
    UsageFields,
    extract_embedding_usage,
    extract_usage,
    split_options,
    to_inline_messages,
    wrap_error,
)

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"

_METADATA_FIELDS = (
    "done",
    "done_reason",
    "total_duration",
    "load_duration",
    "prompt_eval_duration",
    "eval_duration",
)


class OllamaProvider(LLMProvider):

    name = "ollama"
    label = "Ollama"

    def __init__(
        self,
        endpoint: str,
        default_model: str,
        logger: LoggerInterface | None = None,
        embedding_model: str | None = None,
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(logger)
        self._endpoint = endpoint.rstrip("/")
        self._default_model = default_model
        self._embedding_model = embedding_model
        self._client = client or httpx.AsyncClient(base_url=self._endpoint, timeout=timeout)
        self._logger.debug(
            "Ollama provider initialized (endpoint=%s, model=%s, embedding_model=%s)",
            self._endpoint, default_model, embedding_model,
        )

    async def get_available_models(self) -> list[str]:
        self._logger.debug("Fetching available Ollama models from %s", self._endpoint)
        try:
            resp = await self._client.get("/api/tags")
            resp.raise_for_status()
            return [model["name"] for model in resp.json().get("models", [])]
        except Exception as exc:
            self._logger.error("Error fetching Ollama models: %s", exc)
            raise self._handle_error(exc) from exc

    def _build_payload(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None,
        stream: bool,
    ) -> dict[str, Any]:
        known, rest = split_options(options)
        runtime: dict[str, Any] = {}
        if known["temperature"] is not None:
            runtime["temperature"] = known["temperature"]
        if known["max_tokens"] is not None:
            runtime["num_predict"] = known["max_tokens"]
        runtime.update(rest)

        payload: dict[str, Any] = {
            "model": known["model"] or self._default_model,
            "messages": to_inline_messages(messages, known["system_prompt"]),
            "stream": stream,
            "options": runtime,
        }
        if known["response_format"] == "json":
            payload["format"] = "json"
        return payload

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        payload = self._build_payload(messages, options, stream=False)
        self._logger.debug(
            "Sending conversation to Ollama (model=%s, messages=%d)",
            payload["model"], len(payload["messages"]),
        )
        try:
            resp = await self._client.post("/api/chat", json=payload)
            resp.raise_for_status()
            return self._normalize_response(resp.json(), payload["model"])
        except Exception as exc:
            self._logger.error("Error sending conversation to Ollama: %s", exc)
            raise self._handle_error(exc) from exc

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        payload = self._build_payload(messages, options, stream=True)
        self._logger.debug(
            "Streaming conversation from Ollama (model=%s, messages=%d)",
            payload["model"], len(payload["messages"]),
        )
        accumulator = StreamAccumulator(callback)
        final: dict[str, Any] | None = None
        try:
            async with self._client.stream("POST", "/api/chat", json=payload) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    part = json.loads(line)
                    if "error" in part:
                        raise APIError(
                            f"Ollama API Error: {part['error']}",
                            500,
                            {"provider": self.name, "body": part},
                        )
                    accumulator.push(part.get("message", {}).get("content"))
                    if part.get("done"):
                        final = part
        except APIError as exc:
            self._logger.error(
                "Ollama reported an error mid-stream after %d fragment(s): %s",
                accumulator.fragments, exc,
            )
            raise
        except Exception as exc:
            self._logger.error(
                "Error streaming conversation from Ollama after %d fragment(s): %s",
                accumulator.fragments, exc,
            )
            raise self._handle_error(exc) from exc

        self._logger.debug("Ollama stream finished (%d fragments)", accumulator.fragments)
        return LLMResponse(
            content=accumulator.text,
            model=(final or {}).get("model") or payload["model"],
            usage=extract_usage(final, OLLAMA_USAGE),
            metadata=self._metadata(final),
        )

    def supports_embeddings(self) -> bool:
        return True

    async def embed(
        self,
        texts: Sequence[str],
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingResponse:
        options = options or EmbeddingOptions()
        model = options.model or self._embedding_model or DEFAULT_EMBEDDING_MODEL
        payload: dict[str, Any] = {"model": model, "input": list(texts)}
        if options.truncate is not None:
            payload["truncate"] = options.truncate
        payload.update(options.passthrough())
        self._logger.debug("Generating embeddings with Ollama (model=%s, texts=%d)", model, len(texts))
        try:
            resp = await self._client.post("/api/embed", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except Exception as exc:
            self._logger.error("Error generating embeddings with Ollama: %s", exc)
            raise self._handle_error(exc) from exc

        return EmbeddingResponse(
            embeddings=data.get("embeddings", []),
            model=data.get("model") or model,
            usage=extract_embedding_usage(data, UsageFields("prompt_eval_count")),
            metadata={"provider": self.name},
        )

    def _normalize_response(self, data: dict[str, Any], model: str) -> LLMResponse:
        return LLMResponse(
            content=data.get("message", {}).get("content", ""),
            model=data.get("model") or model,
            usage=extract_usage(data, OLLAMA_USAGE),
            metadata=self._metadata(data),
        )

    def _metadata(self, data: dict[str, Any] | None) -> dict[str, Any]:
        metadata: dict[str, Any] = {"provider": self.name}
        for key in _METADATA_FIELDS:
            if data and data.get(key) is not None:
                metadata[key] = data[key]
        return metadata

    def _handle_error(self, exc: Exception) -> APIError:
        details: dict[str, Any] = {}
        if isinstance(exc, httpx.HTTPStatusError):
            try:
                details["body"] = exc.response.json()
            except ValueError:
                details["body"] = exc.response.text
        return wrap_error(exc, self.name, self.label, **details)

    async def aclose(self) -> None:
        await self._client.aclose()
