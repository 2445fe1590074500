from llm_toolkit.config import LLMConfig
from llm_toolkit.conversation import Conversation, ConversationBackend
from llm_toolkit.errors import APIError, ConfigurationError, ToolkitError
from llm_toolkit.module import LLMModule
from llm_toolkit.providers import (
    EmbeddingOptions,
    EmbeddingResponse,
    LLMOptions,
    LLMProvider,
    LLMResponse,
    Message,
    Role,
    Usage,
)

__all__ = [
    "LLMModule",
    "LLMConfig",
    "Conversation",
    "ConversationBackend",
    "LLMProvider",
    "LLMOptions",
    "LLMResponse",
    "EmbeddingOptions",
    "EmbeddingResponse",
    "Message",
    "Role",
    "Usage",
    "ToolkitError",
    "ConfigurationError",
    "APIError",
]
