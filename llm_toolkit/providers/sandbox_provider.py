"""
UBC LLM Sandbox provider.

The sandbox is a LiteLLM proxy in front of models hosted at UBC and speaks
the OpenAI protocol, so this adapter only changes what differs: the endpoint
is mandatory, the default embedding model is served by Ollama, and usage is
rarely reported on streams.
"""

from __future__ import annotations

from typing import Any

from llm_toolkit.errors import ConfigurationError
from llm_toolkit.logging.logger import LoggerInterface
from llm_toolkit.providers.openai_provider import OpenAIProvider


class UbcLlmSandboxProvider(OpenAIProvider):

    name = "ubc-llm-sandbox"
    label = "UBC LLM Sandbox"
    default_embedding_model = "nomic-embed-text"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        default_model: str,
        logger: LoggerInterface | None = None,
        embedding_model: str | None = None,
        timeout: float = 120.0,
        client: Any | None = None,
    ) -> None:
        if not endpoint:
            raise ConfigurationError("endpoint is required for UBC LLM Sandbox provider")
        super().__init__(
            api_key,
            default_model,
            logger=logger,
            endpoint=endpoint,
            embedding_model=embedding_model,
            timeout=timeout,
            client=client,
        )

    def _embedding_params(self) -> dict[str, Any]:
        # The SDK asks for base64 unless told otherwise; Ollama only serves floats.
        return {"encoding_format": "float"}
