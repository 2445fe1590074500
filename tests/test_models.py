"""Tests for the option/message data model and option merging."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from llm_toolkit.providers.models import (
    KNOWN_OPTION_FIELDS,
    EmbeddingOptions,
    LLMOptions,
    Message,
    Role,
    merge_options,
)


class TestMergeOptions:
    def test_later_layers_override_key_by_key(self):
        defaults = LLMOptions(temperature=0.2)
        call = LLMOptions(temperature=0.9, max_tokens=50)
        forced = {"stream": True}

        merged = merge_options(defaults, call, forced)

        assert merged.explicit() == {"temperature": 0.9, "max_tokens": 50, "stream": True}

    def test_unset_fields_do_not_clear_lower_layers(self):
        merged = merge_options(
            LLMOptions(model="base", temperature=0.3),
            LLMOptions(max_tokens=10),
        )
        assert merged.model == "base"
        assert merged.temperature == 0.3
        assert merged.max_tokens == 10

    def test_explicit_none_overrides(self):
        merged = merge_options(LLMOptions(temperature=0.3), {"temperature": None})
        assert merged.temperature is None

    def test_nested_values_are_replaced_not_merged(self):
        merged = merge_options(
            {"stop": {"a": 1, "b": 2}},
            {"stop": {"c": 3}},
        )
        assert merged.passthrough() == {"stop": {"c": 3}}

    def test_none_layers_are_skipped(self):
        merged = merge_options(None, LLMOptions(model="m"), None)
        assert merged.explicit() == {"model": "m"}

    def test_merges_into_embedding_options(self):
        merged = merge_options(
            {"model": "embed-default"},
            EmbeddingOptions(truncate=True, dimensions=256),
            into=EmbeddingOptions,
        )
        assert isinstance(merged, EmbeddingOptions)
        assert merged.model == "embed-default"
        assert merged.truncate is True
        assert merged.passthrough() == {"dimensions": 256}


class TestLLMOptions:
    def test_unknown_keys_are_kept_in_order(self):
        options = LLMOptions(temperature=0.1, num_ctx=8192, top_k=40, seed=7)
        assert list(options.passthrough()) == ["num_ctx", "top_k", "seed"]
        assert options.passthrough()["num_ctx"] == 8192

    def test_known_fields_are_not_passthrough(self):
        options = LLMOptions(model="m", system_prompt="be brief", response_format="json")
        assert options.passthrough() == {}
        assert KNOWN_OPTION_FIELDS == {
            "model",
            "temperature",
            "max_tokens",
            "system_prompt",
            "response_format",
            "stream",
        }

    def test_response_format_is_restricted(self):
        with pytest.raises(ValidationError):
            LLMOptions(response_format="xml")


class TestMessage:
    def test_role_accepts_plain_strings(self):
        msg = Message(role="assistant", content="hi")
        assert msg.role is Role.ASSISTANT

    def test_messages_are_immutable(self):
        msg = Message(role=Role.USER, content="hi")
        with pytest.raises(ValidationError):
            msg.content = "changed"

    def test_now_stamps_utc_timestamp(self):
        msg = Message.now("user", "hello")
        assert msg.timestamp is not None
        assert msg.timestamp.endswith("+00:00")
