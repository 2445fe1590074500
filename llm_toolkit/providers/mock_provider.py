"""
Deterministic mock LLM provider for testing and development.

Always returns the same output for the same conversation hash, streams it
word by word, and derives embeddings from a hash of each text, so the whole
toolkit can run without network calls or credentials.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

from llm_toolkit.logging.logger import LoggerInterface
from llm_toolkit.providers.base import LLMProvider
from llm_toolkit.providers.models import (
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingUsage,
    LLMOptions,
    LLMResponse,
    Message,
    Usage,
)
from llm_toolkit.providers.normalize import (
    StreamAccumulator,
    StreamCallback,
    split_options,
    to_inline_messages,
)

_MOCK_PREFIX = "[MOCK] "
DEFAULT_MODEL = "mock-deterministic"
EMBEDDING_DIMENSIONS = 8


class MockProvider(LLMProvider):

    name = "mock"
    label = "Mock"

    def __init__(
        self,
        default_model: str | None = None,
        logger: LoggerInterface | None = None,
        embedding_model: str | None = None,
    ) -> None:
        super().__init__(logger)
        self._default_model = default_model or DEFAULT_MODEL
        self._embedding_model = embedding_model or f"{self._default_model}-embed"

    async def get_available_models(self) -> list[str]:
        return [self._default_model, self._embedding_model]

    def _reply(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None,
    ) -> tuple[str, str, Usage]:
        known, _ = split_options(options)
        sent = to_inline_messages(messages, known["system_prompt"])
        transcript = "\n".join(f"{msg['role']}: {msg['content']}" for msg in sent)
        prompt_hash = hashlib.sha256(transcript.encode()).hexdigest()
        content = (
            f"{_MOCK_PREFIX}Deterministic response for conversation hash "
            f"{prompt_hash[:12]} ({len(sent)} messages)."
        )
        prompt_tokens = len(transcript.split())
        completion_tokens = len(content.split())
        usage = Usage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )
        return content, known["model"] or self._default_model, usage

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        content, model, usage = self._reply(messages, options)
        return LLMResponse(
            content=content,
            model=model,
            usage=usage,
            metadata={"provider": self.name},
        )

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        content, model, _ = self._reply(messages, options)
        accumulator = StreamAccumulator(callback)
        words = content.split(" ")
        for index, word in enumerate(words):
            accumulator.push(word if index == len(words) - 1 else f"{word} ")
        return LLMResponse(
            content=accumulator.text,
            model=model,
            metadata={"provider": self.name},
        )

    def supports_embeddings(self) -> bool:
        return True

    async def embed(
        self,
        texts: Sequence[str],
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingResponse:
        model = (options.model if options else None) or self._embedding_model
        embeddings = []
        for text in texts:
            digest = hashlib.sha256(text.encode()).digest()
            embeddings.append(
                [digest[i] / 255.0 for i in range(EMBEDDING_DIMENSIONS)]
            )
        tokens = sum(len(text.split()) for text in texts)
        return EmbeddingResponse(
            embeddings=embeddings,
            model=model,
            usage=EmbeddingUsage(prompt_tokens=tokens, total_tokens=tokens),
            metadata={"provider": self.name},
        )
