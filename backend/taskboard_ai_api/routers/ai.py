from __future__ import annotations

import logging
from typing import AsyncIterator, Literal

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from ..agent.providers.base import (
    EmptyChoiceError,
    MissingCredentialError,
    ModelProvider,
    UpstreamLLMError,
)
from ..agent.providers.openai_provider import describe_upstream_error
from ..agent.types import ChatMessage
from ..config import Settings
from ..deps import get_current_user_id, get_provider, get_rag_service, get_settings
from ..services.rag import RagService, encode_sse, relay_chat_stream


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


class AIMessage(BaseModel):
    role: Literal["system", "user", "assistant"] = "user"
    content: str = ""


class AIRequest(BaseModel):
    message: str = ""
    messages: list[AIMessage] = Field(default_factory=list)
    model: str | None = None
    max_tokens: int | None = Field(default=None, ge=0)
    temperature: float | None = Field(default=None, ge=0)


class AIResponse(BaseModel):
    message: str
    model: str


def _original_messages(req: AIRequest) -> list[ChatMessage]:
    if req.messages:
        return [ChatMessage(role=m.role, content=m.content) for m in req.messages]
    if req.message:
        return [ChatMessage(role="user", content=req.message)]
    return []


async def _build_messages(req: AIRequest, user_id: str, rag: RagService) -> list[ChatMessage]:
    question = req.message.strip()
    if not question:
        return _original_messages(req)
    try:
        final_prompt = await rag.prepare(user_id, question)
    except Exception as e:
        # Any augmentation failure degrades to a plain chat turn.
        logger.warning("rag preparation skipped, falling back to original messages: %s", e)
        return _original_messages(req)
    logger.debug("rag preparation succeeded, using augmented prompt")
    return [ChatMessage(role="user", content=final_prompt)]


def _sampling(req: AIRequest) -> tuple[float, int]:
    # Zero means "unset", matching the web client which always sends both fields.
    temperature = req.temperature if req.temperature else DEFAULT_TEMPERATURE
    max_tokens = req.max_tokens if req.max_tokens else DEFAULT_MAX_TOKENS
    return temperature, max_tokens


def _require_messages(messages: list[ChatMessage]) -> None:
    if not messages:
        raise HTTPException(status_code=400, detail="message 不能为空")


@router.post("/ai/chat", response_model=AIResponse)
async def ai_chat(
    req: AIRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    provider: ModelProvider = Depends(get_provider),
    rag: RagService = Depends(get_rag_service),
) -> AIResponse:
    messages = await _build_messages(req, user_id, rag)
    _require_messages(messages)

    model = (req.model or "").strip() or settings.model
    temperature, max_tokens = _sampling(req)
    try:
        text = await provider.complete(
            model=model, messages=messages, temperature=temperature, max_tokens=max_tokens
        )
    except MissingCredentialError as e:
        raise HTTPException(status_code=400, detail=f"AI API key not configured ({e.name})") from None
    except UpstreamLLMError as e:
        raise HTTPException(status_code=502, detail=describe_upstream_error(e)) from None
    except EmptyChoiceError:
        raise HTTPException(status_code=502, detail="No response from AI") from None
    except httpx.HTTPError as e:
        logger.error("AI API request failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to connect to AI service") from None

    logger.debug("ai chat complete user_id=%s model=%s", user_id, model)
    return AIResponse(message=text, model=model)


@router.post("/ai/chat/stream")
async def ai_chat_stream(
    req: AIRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    provider: ModelProvider = Depends(get_provider),
    rag: RagService = Depends(get_rag_service),
) -> StreamingResponse:
    messages = await _build_messages(req, user_id, rag)
    _require_messages(messages)

    model = (req.model or "").strip() or settings.model
    temperature, max_tokens = _sampling(req)

    # Enter the upstream stream by hand so a bad status is still a normal error response;
    # it stays open for the whole streaming response and is closed by the background task.
    stream_cm = provider.open_stream(
        model=model, messages=messages, temperature=temperature, max_tokens=max_tokens
    )
    try:
        lines = await stream_cm.__aenter__()
    except MissingCredentialError as e:
        raise HTTPException(status_code=400, detail=f"AI API key not configured ({e.name})") from None
    except UpstreamLLMError as e:
        raise HTTPException(status_code=502, detail=describe_upstream_error(e)) from None
    except httpx.HTTPError as e:
        logger.error("AI API request failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to connect to AI service") from None

    async def _iter() -> AsyncIterator[str]:
        async for chunk in relay_chat_stream(lines):
            yield encode_sse(chunk)

    async def _cleanup() -> None:
        await stream_cm.__aexit__(None, None, None)

    return StreamingResponse(
        _iter(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(_cleanup),
    )
