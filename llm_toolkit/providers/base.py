"""Abstract base class that all LLM providers must implement."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from llm_toolkit.errors import APIError
from llm_toolkit.logging.logger import LoggerInterface, get_logger
from llm_toolkit.providers.models import (
    EmbeddingOptions,
    EmbeddingResponse,
    LLMOptions,
    LLMResponse,
    Message,
    Role,
)
from llm_toolkit.providers.normalize import StreamCallback


class LLMProvider(ABC):
    """
    Contract for LLM providers.

    Every implementation MUST:
    - Leave the caller's message list untouched
    - Forward unrecognized options to the backend verbatim
    - Report usage only when the backend does, never as zeros
    - Raise APIError, and only APIError, for backend failures
    """

    name: str = "base"
    label: str = "LLM"

    def __init__(self, logger: LoggerInterface | None = None) -> None:
        self._logger: LoggerInterface = logger or get_logger(
            f"llm_toolkit.providers.{self.name}"
        )

    def get_name(self) -> str:
        return self.name

    @abstractmethod
    async def get_available_models(self) -> list[str]:
        """Return every model id the backend lists, across all pages."""

    async def send_message(
        self,
        message: str,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Convenience wrapper: sends a single user message."""
        messages = [Message(role=Role.USER, content=message)]
        if options is not None and options.system_prompt:
            messages.insert(0, Message(role=Role.SYSTEM, content=options.system_prompt))
        return await self.send_conversation(messages, options)

    @abstractmethod
    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Send the conversation and return the complete reply."""

    @abstractmethod
    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Stream the reply, calling ``callback`` once per fragment, in order."""

    def supports_embeddings(self) -> bool:
        return False

    async def embed(
        self,
        texts: Sequence[str],
        options: EmbeddingOptions | None = None,
    ) -> EmbeddingResponse:
        message = f"Embeddings are not supported by the {self.label} provider."
        self._logger.warning("%s (texts=%d)", message, len(texts))
        raise APIError(message, 501, {"provider": self.name})

    async def aclose(self) -> None:
        """Release the backend client, if the provider owns one."""
