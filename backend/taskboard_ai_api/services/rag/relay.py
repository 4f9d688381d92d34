from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx

from ...agent.types import StreamChunk


logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def encode_sse(chunk: StreamChunk) -> str:
    return f"data: {chunk.to_json()}\n\n"


def _parse_delta(payload: str) -> tuple[str, str]:
    """Return (content, finish_reason) of the first choice, empty strings when absent."""

    try:
        data = json.loads(payload)
    except ValueError:
        return "", ""
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return "", ""
    choice = choices[0]
    delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}
    content = delta.get("content")
    finish_reason = choice.get("finish_reason")
    return (
        content if isinstance(content, str) else "",
        finish_reason if isinstance(finish_reason, str) else "",
    )


async def relay_chat_stream(lines: AsyncIterator[str]) -> AsyncIterator[StreamChunk]:
    """
    Turn upstream Chat Completions SSE lines into outbound chunks.

    Content deltas are forwarded in arrival order. Reading stops at ``[DONE]`` or the first
    populated ``finish_reason``. Whatever ends the loop, including an upstream read error,
    exactly one ``StreamChunk("", True)`` is emitted last.
    """

    emitted = 0
    try:
        async for raw in lines:
            line = (raw or "").strip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            payload = line[len(DATA_PREFIX) :].strip()
            if payload == DONE_MARKER:
                break
            content, finish_reason = _parse_delta(payload)
            if content:
                emitted += 1
                yield StreamChunk(content=content, done=False)
            if finish_reason:
                break
    except (httpx.HTTPError, httpx.StreamError, OSError) as e:
        logger.error("error reading upstream stream after %d chunks: %s", emitted, e)

    yield StreamChunk(content="", done=True)
