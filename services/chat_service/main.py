"""
Chat Service -- HTTP front for llm_toolkit.

Endpoints:
1. GET  /health                           -- provider in use
2. GET  /models                           -- models the backend lists
3. POST /chat                             -- one-shot conversation, JSON reply
4. POST /chat/stream                      -- one-shot conversation, streamed text
5. POST /conversations/{id}/messages      -- server-held chat session, streamed text
6. GET  /conversations/{id}               -- session history
7. DELETE /conversations/{id}             -- drop a session
8. POST /embed                            -- embeddings
9. GET  /metrics                          -- Prometheus metrics

The backend is chosen entirely by LLM_* environment variables.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from llm_toolkit import (
    APIError,
    Conversation,
    LLMConfig,
    LLMModule,
    LLMResponse,
    Message,
    Role,
    ToolkitError,
)
from llm_toolkit.logging.logger import setup_logging
from llm_toolkit.observability.metrics import metrics_response
from llm_toolkit.providers.normalize import StreamCallback
from services.chat_service.config import ChatServiceConfig

SERVICE_NAME = "chat_service"
llm: LLMModule | None = None
cfg: ChatServiceConfig | None = None

# Least recently used first; bounded by CHAT_MAX_CONVERSATIONS
_conversations: OrderedDict[str, Conversation] = OrderedDict()
_conversation_locks: dict[str, asyncio.Lock] = {}


@asynccontextmanager
async def lifespan(application: FastAPI):
    global llm, cfg
    cfg = ChatServiceConfig.from_env()
    logger = setup_logging(SERVICE_NAME, debug=cfg.debug)

    llm = LLMModule(LLMConfig.from_env())
    logger.info("Chat Service ready (provider=%s)", llm.get_provider_name())
    yield

    logger.info("Shutting down")
    _conversations.clear()
    _conversation_locks.clear()
    if llm:
        await llm.aclose()


app = FastAPI(
    title="llm-toolkit - Chat Service",
    version="0.1.0",
    description="One HTTP contract over OpenAI, Anthropic, Ollama and the UBC LLM Sandbox",
    lifespan=lifespan,
)

logger = logging.getLogger(SERVICE_NAME)


class ChatRequest(BaseModel):
    messages: list[Message]
    options: dict[str, Any] = Field(default_factory=dict)


class TurnRequest(BaseModel):
    content: str
    options: dict[str, Any] = Field(default_factory=dict)


class EmbedRequest(BaseModel):
    texts: list[str]
    options: dict[str, Any] = Field(default_factory=dict)


@app.exception_handler(ToolkitError)
async def toolkit_error_handler(request: Request, exc: ToolkitError) -> JSONResponse:
    if isinstance(exc, APIError):
        status = 501 if exc.code == 501 else 502
    else:
        status = 500
    return JSONResponse(
        status_code=status,
        content={
            "error": exc.message,
            "code": exc.code,
            "provider": exc.details.get("provider"),
        },
    )


@app.exception_handler(ValidationError)
async def options_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid options", "detail": exc.errors(include_context=False)},
    )


def _get_llm() -> LLMModule:
    if llm is None:
        raise HTTPException(status_code=503, detail="LLM module not initialized")
    return llm


def _chat_options(options: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {"temperature": cfg.temperature} if cfg else {}
    merged.update(options)
    return merged


async def _open_stream(
    run: Callable[[StreamCallback], Awaitable[LLMResponse]],
) -> StreamingResponse:
    """
    Start a callback-driven stream and wait for its first fragment.

    A failure before the first fragment is raised from here, while the
    status line can still change, so the exception handlers map it exactly
    as they do for /chat.
    """
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def produce() -> None:
        try:
            await run(queue.put_nowait)
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(produce())
    try:
        first = await queue.get()
    except asyncio.CancelledError:
        task.cancel()
        raise
    if first is None:
        # Finished without output: re-raise its failure, if any
        await task
    return StreamingResponse(_drain(first, queue, task), media_type="text/plain")


async def _drain(
    first: str | None,
    queue: asyncio.Queue[str | None],
    task: asyncio.Task[None],
) -> AsyncIterator[str]:
    try:
        fragment = first
        while fragment is not None:
            yield fragment
            fragment = await queue.get()
        await task
    except ToolkitError:
        # Headers are already sent; the client sees a truncated body.
        logger.exception("Stream failed after it started")
    finally:
        if not task.done():
            # Client went away mid-stream
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


def _session(conversation_id: str, module: LLMModule) -> Conversation:
    """Return the conversation for ``conversation_id``, creating it on first use."""
    conversation = _conversations.get(conversation_id)
    if conversation is not None:
        _conversations.move_to_end(conversation_id)
        return conversation

    conversation = module.create_conversation()
    if cfg and cfg.system_prompt:
        conversation.add_message(Role.SYSTEM, cfg.system_prompt)
    _conversations[conversation_id] = conversation
    logger.info("Started conversation %s", conversation_id)

    limit = cfg.max_conversations if cfg else None
    while limit and len(_conversations) > limit:
        stale_id, _ = _conversations.popitem(last=False)
        _conversation_locks.pop(stale_id, None)
        logger.info("Evicted least recently used conversation %s", stale_id)
    return conversation


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "provider": _get_llm().get_provider_name(),
        "conversations": len(_conversations),
    }


@app.get("/models")
async def list_models():
    return {"models": await _get_llm().get_available_models()}


@app.post("/chat")
async def chat(req: ChatRequest):
    response = await _get_llm().send_conversation(req.messages, _chat_options(req.options))
    return response.model_dump()


@app.post("/chat/stream")
async def chat_stream(req: ChatRequest):
    module = _get_llm()
    options = _chat_options(req.options)

    def run(callback: StreamCallback) -> Awaitable[LLMResponse]:
        return module.stream_conversation(req.messages, callback, options)

    return await _open_stream(run)


@app.post("/conversations/{conversation_id}/messages")
async def conversation_turn(conversation_id: str, req: TurnRequest):
    conversation = _session(conversation_id, _get_llm())
    lock = _conversation_locks.setdefault(conversation_id, asyncio.Lock())
    options = _chat_options(req.options)

    async def run(callback: StreamCallback) -> LLMResponse:
        async with lock:
            # The user turn is recorded only with a successful reply
            return await conversation.stream(callback, options, prompt=req.content)

    return await _open_stream(run)


@app.get("/conversations/{conversation_id}")
async def conversation_history(conversation_id: str):
    conversation = _conversations.get(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {
        "conversation_id": conversation_id,
        "messages": [msg.model_dump(mode="json") for msg in conversation.get_history()],
    }


@app.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str):
    if _conversations.pop(conversation_id, None) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    _conversation_locks.pop(conversation_id, None)
    return {"deleted": True}


@app.post("/embed")
async def embed(req: EmbedRequest):
    response = await _get_llm().embed(req.texts, req.options)
    return response.model_dump()


@app.get("/metrics")
async def metrics():
    return metrics_response()
