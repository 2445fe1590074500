"""
Conversation -- an ordered chat history bound to an LLM backend.

The history only grows: by add_message, or by send/stream appending the
assistant's reply once the call has succeeded. A failed call leaves it
exactly as it was. Not safe for concurrent use; give each concurrent
caller its own Conversation.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from llm_toolkit.providers.models import LLMResponse, Message, OptionsLike, Role
from llm_toolkit.providers.normalize import StreamCallback


class ConversationBackend(Protocol):
    """Every verb a Conversation calls. LLMModule implements it."""

    async def send_conversation(
        self,
        messages: Sequence[Message],
        options: OptionsLike = None,
    ) -> LLMResponse: ...

    async def stream_conversation(
        self,
        messages: Sequence[Message],
        callback: StreamCallback,
        options: OptionsLike = None,
    ) -> LLMResponse: ...


class Conversation:

    def __init__(self, backend: ConversationBackend) -> None:
        self._backend = backend
        self._messages: list[Message] = []

    def add_message(self, role: Role | str, content: str) -> None:
        self._messages.append(Message.now(role, content))

    def get_history(self) -> list[Message]:
        """Return a copy; messages themselves are immutable."""
        return list(self._messages)

    def _turn(self, prompt: str | None) -> list[Message]:
        if prompt is None:
            return []
        return [Message.now(Role.USER, prompt)]

    async def send(
        self,
        options: OptionsLike = None,
        prompt: str | None = None,
    ) -> LLMResponse:
        """
        Send the history and append the reply.

        ``prompt``, when given, is a new user turn sent after the history
        and recorded only together with a successful reply.
        """
        turn = self._turn(prompt)
        response = await self._backend.send_conversation(self._messages + turn, options)
        self._messages.extend(turn)
        self.add_message(Role.ASSISTANT, response.content)
        return response

    async def stream(
        self,
        callback: StreamCallback,
        options: OptionsLike = None,
        prompt: str | None = None,
    ) -> LLMResponse:
        """
        Stream the reply and append it to the history.

        The appended message is what the callback actually received, which
        is also what the caller has shown; the backend's own ``content`` is
        only returned. ``prompt`` behaves as in ``send``.
        """
        turn = self._turn(prompt)
        received: list[str] = []

        def relay(fragment: str) -> None:
            received.append(fragment)
            callback(fragment)

        response = await self._backend.stream_conversation(
            self._messages + turn, relay, options
        )
        self._messages.extend(turn)
        self.add_message(Role.ASSISTANT, "".join(received))
        return response
