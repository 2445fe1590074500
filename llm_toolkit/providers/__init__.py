from llm_toolkit.providers.base import LLMProvider
from llm_toolkit.providers.factory import create_provider, register_provider, available_providers
from llm_toolkit.providers.models import (
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingUsage,
    LLMOptions,
    LLMResponse,
    Message,
    Role,
    Usage,
    merge_options,
)
from llm_toolkit.providers.mock_provider import MockProvider

__all__ = [
    "LLMProvider",
    "LLMOptions",
    "LLMResponse",
    "EmbeddingOptions",
    "EmbeddingResponse",
    "EmbeddingUsage",
    "Message",
    "Role",
    "Usage",
    "MockProvider",
    "merge_options",
    "create_provider",
    "register_provider",
    "available_providers",
]
