from __future__ import annotations

from contextlib import asynccontextmanager
import json
from typing import AsyncIterator

from ..types import ChatMessage


_DEFAULT_REPLY = "（mock 模型）我已启动。要获得真实回答，请配置 DASHSCOPE_API_KEY 并使用 openai provider。"


def sse_lines_for(text: str) -> list[str]:
    """Render `text` as Chat Completions stream lines, one delta per character."""

    lines: list[str] = []
    for ch in text:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": ch}, "finish_reason": None}]}, ensure_ascii=False))
        lines.append("")
    lines.append("data: " + json.dumps({"choices": [{"delta": {}, "finish_reason": "stop"}]}))
    lines.append("")
    lines.append("data: [DONE]")
    return lines


class MockProvider:
    name = "mock"

    def __init__(self, replies: list[str] | None = None, stream_lines: list[str] | None = None) -> None:
        self._replies = list(replies or [])
        self._stream_lines = stream_lines
        self.calls: list[list[ChatMessage]] = []
        self.stream_calls: list[list[ChatMessage]] = []

    async def complete(self, *, model: str, messages, temperature: float = 0.2, max_tokens: int = 800) -> str:  # noqa: ANN001
        _ = (model, temperature, max_tokens)
        self.calls.append(list(messages))
        if self._replies:
            return self._replies.pop(0)
        return _DEFAULT_REPLY

    @asynccontextmanager
    async def open_stream(
        self, *, model: str, messages, temperature: float = 0.7, max_tokens: int = 2000  # noqa: ANN001
    ) -> AsyncIterator[AsyncIterator[str]]:
        _ = (model, temperature, max_tokens)
        self.stream_calls.append(list(messages))
        lines = self._stream_lines if self._stream_lines is not None else sse_lines_for(_DEFAULT_REPLY)

        async def _iter() -> AsyncIterator[str]:
            for line in lines:
                yield line

        yield _iter()
