from __future__ import annotations

import httpx
import pytest

from fakes import ns
from llm_toolkit.errors import APIError
from llm_toolkit.providers.models import LLMOptions, Message, Role
from llm_toolkit.providers.normalize import (
    ANTHROPIC_USAGE,
    OLLAMA_USAGE,
    OPENAI_USAGE,
    StreamAccumulator,
    extract_usage,
    split_options,
    to_inline_messages,
    to_top_level_system,
    wrap_error,
)


def _msgs(*pairs: tuple[str, str]) -> list[Message]:
    return [Message(role=role, content=content) for role, content in pairs]


class TestSplitOptions:
    def test_separates_known_from_passthrough(self):
        known, rest = split_options(LLMOptions(temperature=0.5, top_p=0.9))
        assert known["temperature"] == 0.5
        assert known["model"] is None
        assert rest == {"top_p": 0.9}

    def test_none_yields_empty(self):
        known, rest = split_options(None)
        assert all(value is None for value in known.values())
        assert rest == {}


class TestSystemPlacement:
    def test_inline_prepends_prompt_when_absent(self):
        payload = to_inline_messages(_msgs(("user", "hi")), "be brief")
        assert payload == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ]

    def test_inline_keeps_existing_system_message(self):
        messages = _msgs(("system", "S"), ("user", "hi"))
        payload = to_inline_messages(messages, "S")
        assert [m["role"] for m in payload].count("system") == 1
        assert len(messages) == 2

    def test_top_level_extracts_and_joins(self):
        system, payload = to_top_level_system(
            _msgs(("system", "one"), ("user", "hi"), ("system", "two")), "ignored"
        )
        assert system == "one\n\ntwo"
        assert payload == [{"role": "user", "content": "hi"}]

    def test_top_level_falls_back_to_prompt(self):
        system, payload = to_top_level_system(_msgs(("user", "hi")), "be brief")
        assert system == "be brief"
        assert payload == [{"role": "user", "content": "hi"}]

    def test_top_level_without_any_system(self):
        system, _ = to_top_level_system(_msgs(("user", "hi")))
        assert system is None


class TestExtractUsage:
    def test_openai_object(self):
        usage = extract_usage(
            ns(prompt_tokens=3, completion_tokens=4, total_tokens=7), OPENAI_USAGE
        )
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (3, 4, 7)

    def test_missing_usage_is_none(self):
        assert extract_usage(None, OPENAI_USAGE) is None
        assert extract_usage({}, OLLAMA_USAGE) is None

    def test_total_is_derived_when_backend_has_no_total(self):
        usage = extract_usage({"prompt_eval_count": 10, "eval_count": 5}, OLLAMA_USAGE)
        assert usage.total_tokens == 15

    def test_total_not_derived_from_partial_counts(self):
        usage = extract_usage({"input_tokens": 10}, ANTHROPIC_USAGE)
        assert usage.prompt_tokens == 10
        assert usage.completion_tokens is None
        assert usage.total_tokens is None

    def test_reported_total_is_not_recomputed(self):
        usage = extract_usage(
            {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": None}, OPENAI_USAGE
        )
        assert usage.total_tokens is None


class TestWrapError:
    def test_keeps_backend_status(self):
        request = httpx.Request("POST", "http://backend/api/chat")
        response = httpx.Response(404, request=request)
        exc = httpx.HTTPStatusError("not found", request=request, response=response)

        err = wrap_error(exc, "ollama", "Ollama")

        assert isinstance(err, APIError)
        assert err.code == 404
        assert err.message.startswith("Ollama API Error:")
        assert err.details["provider"] == "ollama"
        assert err.details["original_error"] is exc

    def test_transport_failure_is_500(self):
        err = wrap_error(ConnectionError(), "openai", "OpenAI")
        assert err.code == 500
        assert err.message == "OpenAI Provider Error: ConnectionError"
        assert err.details["type"] == "ConnectionError"

    def test_api_error_passes_through(self):
        original = APIError("boom", 418, {"provider": "x"})
        assert wrap_error(original, "openai", "OpenAI") is original

    def test_extra_details_are_attached(self):
        err = wrap_error(RuntimeError("bad"), "ollama", "Ollama", body="oops")
        assert err.details["body"] == "oops"


class TestStreamAccumulator:
    def test_forwards_in_order_and_skips_empty(self):
        seen: list[str] = []
        acc = StreamAccumulator(seen.append)
        for fragment in ["Hel", "", None, "lo"]:
            acc.push(fragment)
        assert seen == ["Hel", "lo"]
        assert acc.text == "Hello"
        assert acc.fragments == 2

    def test_callback_error_propagates(self):
        def explode(_: str) -> None:
            raise ValueError("consumer failed")

        acc = StreamAccumulator(explode)
        with pytest.raises(ValueError):
            acc.push("x")


def test_roles_are_serialized_as_strings():
    payload = to_inline_messages([Message(role=Role.ASSISTANT, content="a")])
    assert payload == [{"role": "assistant", "content": "a"}]
