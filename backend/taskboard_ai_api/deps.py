from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from .agent.providers.base import ModelProvider
from .agent.providers.mock_provider import MockProvider
from .agent.providers.openai_provider import OpenAiProvider
from .config import Settings, load_settings
from .services.rag import RagService


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if isinstance(settings, Settings):
        return settings
    return load_settings()


def get_provider(settings: Settings = Depends(get_settings)) -> ModelProvider:
    if settings.provider == "mock":
        return MockProvider()
    return OpenAiProvider(
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout_seconds=settings.chat_timeout_seconds,
    )


def get_rag_service(
    settings: Settings = Depends(get_settings),
    provider: ModelProvider = Depends(get_provider),
) -> RagService:
    return RagService.from_settings(settings, provider)


def get_current_user_id(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    # Identity is established upstream by the authenticating gateway.
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="未登录")
    return user_id
