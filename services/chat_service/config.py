from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ChatServiceConfig:
    system_prompt: str
    temperature: float
    max_conversations: int
    debug: bool

    @classmethod
    def from_env(cls) -> ChatServiceConfig:
        return cls(
            system_prompt=os.environ.get(
                "CHAT_SYSTEM_PROMPT",
                "You are a helpful assistant that provides clear, concise answers.",
            ),
            temperature=float(os.environ.get("CHAT_TEMPERATURE", "0.7")),
            max_conversations=int(os.environ.get("CHAT_MAX_CONVERSATIONS", "1000")),
            debug=os.environ.get("DEBUG", "").lower() == "true",
        )
