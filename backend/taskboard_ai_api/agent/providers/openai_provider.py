from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
import json
import logging
import re
from typing import AsyncIterator

import httpx

from ..types import ChatMessage
from .base import EmptyChoiceError, MissingCredentialError, UpstreamLLMError


logger = logging.getLogger(__name__)

_V1_RE = re.compile(r"/v1(?:$|/)")
_MAX_ERROR_BODY_CHARS = 4000


def _normalize_base_url(base_url: str) -> str:
    base = (base_url or "").strip().rstrip("/")
    if not base:
        return base
    if _V1_RE.search(base):
        return base
    return f"{base}/v1"


def _payload(
    *, model: str, messages: list[ChatMessage], stream: bool, temperature: float, max_tokens: int
) -> dict:
    return {
        "model": model,
        "messages": [m.to_openai() for m in messages],
        "stream": stream,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }


def _first_choice_text(data: object) -> str:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices:
        raise EmptyChoiceError()
    choice = choices[0] if isinstance(choices[0], dict) else {}
    message = choice.get("message")
    if not isinstance(message, dict):
        raise EmptyChoiceError()
    return str(message.get("content") or "")


@dataclass(frozen=True)
class OpenAiProvider:
    """Chat Completions client for OpenAI-compatible gateways (DashScope compatible-mode, OpenAI, ...)."""

    name: str = "openai"
    api_key: str | None = None
    base_url: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    timeout_seconds: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    def _endpoint(self) -> tuple[str, dict[str, str]]:
        if not self.api_key:
            raise MissingCredentialError()
        base = _normalize_base_url(self.base_url)
        if not base:
            raise ValueError("Missing LLM base url")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return f"{base}/chat/completions", headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=self.transport)

    async def complete(
        self,
        *,
        model: str,
        messages: list[ChatMessage],
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        url, headers = self._endpoint()
        payload = _payload(
            model=model, messages=messages, stream=False, temperature=temperature, max_tokens=max_tokens
        )

        async with self._client(self.timeout_seconds) as client:
            res = await client.post(url, headers=headers, json=payload)
            if res.status_code >= 400:
                body = res.text[:_MAX_ERROR_BODY_CHARS]
                logger.error("LLM api error status=%s body=%s", res.status_code, body)
                raise UpstreamLLMError(res.status_code, body)
            data = res.json()

        return _first_choice_text(data)

    @asynccontextmanager
    async def open_stream(
        self,
        *,
        model: str,
        messages: list[ChatMessage],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open a streaming completion and yield its raw SSE line iterator.

        Non-success statuses raise `UpstreamLLMError` on enter, before any line is read,
        so callers can still answer with a plain error response.
        """

        url, headers = self._endpoint()
        headers["Accept"] = "text/event-stream"
        payload = _payload(
            model=model, messages=messages, stream=True, temperature=temperature, max_tokens=max_tokens
        )

        async with self._client(self.timeout_seconds) as client:
            async with client.stream("POST", url, headers=headers, json=payload) as res:
                if res.status_code >= 400:
                    body = (await res.aread()).decode("utf-8", errors="replace")[:_MAX_ERROR_BODY_CHARS]
                    logger.error("LLM stream api error status=%s body=%s", res.status_code, body)
                    raise UpstreamLLMError(res.status_code, body)
                yield res.aiter_lines()


def describe_upstream_error(err: UpstreamLLMError) -> str:
    try:
        detail = json.loads(err.body)
    except ValueError:
        return f"AI API error: {err.status_code}"
    message = ""
    if isinstance(detail, dict):
        inner = detail.get("error")
        if isinstance(inner, dict):
            message = str(inner.get("message") or "").strip()
        elif isinstance(inner, str):
            message = inner.strip()
    return f"AI API error: {err.status_code}" + (f" ({message})" if message else "")
