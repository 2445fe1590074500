from __future__ import annotations

import json

import httpx
import pytest

from llm_toolkit.errors import APIError
from llm_toolkit.providers.models import EmbeddingOptions, LLMOptions, Message
from llm_toolkit.providers.ollama_provider import OllamaProvider

BASE_URL = "http://ollama.local:11434"


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


def _ndjson(*parts: dict) -> bytes:
    return "\n".join(json.dumps(part) for part in parts).encode() + b"\n"


def _provider(recorder: Recorder, **kwargs) -> OllamaProvider:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(recorder))
    return OllamaProvider(BASE_URL + "/", "llama3", client=client, **kwargs)


def _user(text="Hi"):
    return [Message(role="user", content=text)]


class TestSendConversation:
    @pytest.mark.asyncio
    async def test_options_land_in_options_object(self):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "model": "llama3",
                    "message": {"role": "assistant", "content": "Hello"},
                    "done": True,
                    "done_reason": "stop",
                    "prompt_eval_count": 7,
                    "eval_count": 2,
                },
            )
        )
        response = await _provider(recorder).send_conversation(
            _user(),
            LLMOptions(temperature=0.2, max_tokens=64, num_ctx=8192, response_format="json"),
        )

        payload = recorder.last_payload
        assert recorder.requests[-1].url.path == "/api/chat"
        assert payload["stream"] is False
        assert payload["format"] == "json"
        assert payload["options"] == {"temperature": 0.2, "num_predict": 64, "num_ctx": 8192}
        assert "num_ctx" not in payload

        assert response.content == "Hello"
        assert response.usage.prompt_tokens == 7
        assert response.usage.completion_tokens == 2
        assert response.usage.total_tokens == 9
        assert response.metadata["done_reason"] == "stop"

    @pytest.mark.asyncio
    async def test_system_prompt_is_sent_inline_once(self):
        recorder = Recorder(
            httpx.Response(200, json={"model": "llama3", "message": {"content": "ok"}})
        )
        messages = [Message(role="system", content="S"), Message(role="user", content="Hi")]

        response = await _provider(recorder).send_conversation(
            messages, LLMOptions(system_prompt="S")
        )

        roles = [m["role"] for m in recorder.last_payload["messages"]]
        assert roles == ["system", "user"]
        assert response.usage is None

    @pytest.mark.asyncio
    async def test_http_error_keeps_status_and_body(self):
        recorder = Recorder(httpx.Response(404, json={"error": "model 'nope' not found"}))

        with pytest.raises(APIError) as exc_info:
            await _provider(recorder).send_conversation(_user(), LLMOptions(model="nope"))

        assert exc_info.value.code == 404
        assert exc_info.value.details["provider"] == "ollama"
        assert exc_info.value.details["body"] == {"error": "model 'nope' not found"}

    @pytest.mark.asyncio
    async def test_connection_failure_is_500(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(refuse))
        provider = OllamaProvider(BASE_URL, "llama3", client=client)

        with pytest.raises(APIError) as exc_info:
            await provider.send_conversation(_user())
        assert exc_info.value.code == 500
        assert exc_info.value.details["type"] == "ConnectError"


class TestStreamConversation:
    @pytest.mark.asyncio
    async def test_ndjson_fragments_and_final_counts(self):
        body = _ndjson(
            {"model": "llama3", "message": {"content": "Hel"}, "done": False},
            {"model": "llama3", "message": {"content": "lo"}, "done": False},
            {
                "model": "llama3",
                "message": {"content": ""},
                "done": True,
                "done_reason": "stop",
                "prompt_eval_count": 4,
                "eval_count": 2,
            },
        )
        recorder = Recorder(httpx.Response(200, content=body))
        seen: list[str] = []

        response = await _provider(recorder).stream_conversation(_user(), seen.append)

        assert recorder.last_payload["stream"] is True
        assert seen == ["Hel", "lo"]
        assert response.content == "Hello"
        assert response.usage.total_tokens == 6
        assert response.metadata["done"] is True

    @pytest.mark.asyncio
    async def test_error_line_aborts_stream(self):
        body = _ndjson(
            {"model": "llama3", "message": {"content": "par"}, "done": False},
            {"error": "out of memory"},
        )
        recorder = Recorder(httpx.Response(200, content=body))
        seen: list[str] = []

        with pytest.raises(APIError) as exc_info:
            await _provider(recorder).stream_conversation(_user(), seen.append)

        assert seen == ["par"]
        assert "out of memory" in exc_info.value.message
        assert exc_info.value.details["body"] == {"error": "out of memory"}

    @pytest.mark.asyncio
    async def test_status_error_before_any_fragment(self):
        recorder = Recorder(httpx.Response(404, json={"error": "model not found"}))
        seen: list[str] = []

        with pytest.raises(APIError) as exc_info:
            await _provider(recorder).stream_conversation(_user(), seen.append)

        assert seen == []
        assert exc_info.value.code == 404
        assert exc_info.value.details["body"] == {"error": "model not found"}


class TestModelsAndEmbeddings:
    @pytest.mark.asyncio
    async def test_models_come_from_tags(self):
        recorder = Recorder(
            httpx.Response(200, json={"models": [{"name": "llama3:latest"}, {"name": "nomic-embed-text:latest"}]})
        )
        models = await _provider(recorder).get_available_models()

        assert recorder.requests[-1].url.path == "/api/tags"
        assert models == ["llama3:latest", "nomic-embed-text:latest"]

    @pytest.mark.asyncio
    async def test_embed_batch(self):
        recorder = Recorder(
            httpx.Response(
                200,
                json={
                    "model": "nomic-embed-text",
                    "embeddings": [[0.1, 0.2], [0.3, 0.4]],
                    "prompt_eval_count": 6,
                },
            )
        )
        provider = _provider(recorder)

        response = await provider.embed(["a", "b"], EmbeddingOptions(truncate=False, keep_alive="5m"))

        payload = recorder.last_payload
        assert recorder.requests[-1].url.path == "/api/embed"
        assert payload == {
            "model": "nomic-embed-text",
            "input": ["a", "b"],
            "truncate": False,
            "keep_alive": "5m",
        }
        assert provider.supports_embeddings() is True
        assert response.embeddings == [[0.1, 0.2], [0.3, 0.4]]
        assert response.usage.prompt_tokens == 6

    @pytest.mark.asyncio
    async def test_configured_embedding_model_is_default(self):
        recorder = Recorder(httpx.Response(200, json={"embeddings": [[1.0]]}))
        response = await _provider(recorder, embedding_model="mxbai-embed-large").embed(["a"])

        assert recorder.last_payload["model"] == "mxbai-embed-large"
        assert response.model == "mxbai-embed-large"
        assert response.usage is None
