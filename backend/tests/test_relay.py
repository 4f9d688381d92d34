from __future__ import annotations

import json
from typing import AsyncIterator

import httpx

from taskboard_ai_api.agent.providers.mock_provider import sse_lines_for
from taskboard_ai_api.agent.types import StreamChunk
from taskboard_ai_api.services.rag.relay import encode_sse, relay_chat_stream


def _delta(content: str, finish_reason: str | None = None) -> str:
    return "data: " + json.dumps(
        {"choices": [{"delta": {"content": content}, "finish_reason": finish_reason}]}, ensure_ascii=False
    )


async def _lines(items: list[str]) -> AsyncIterator[str]:
    for item in items:
        yield item


async def _collect(lines: AsyncIterator[str]) -> list[StreamChunk]:
    return [chunk async for chunk in relay_chat_stream(lines)]


async def test_deltas_are_forwarded_in_order_then_done() -> None:
    chunks = await _collect(_lines(sse_lines_for("你好！")))
    assert [c.content for c in chunks] == ["你", "好", "！", ""]
    assert [c.done for c in chunks] == [False, False, False, True]


async def test_done_marker_stops_reading() -> None:
    chunks = await _collect(_lines([_delta("a"), "data: [DONE]", _delta("never")]))
    assert chunks == [StreamChunk("a", False), StreamChunk("", True)]


async def test_finish_reason_stops_after_forwarding_its_content() -> None:
    chunks = await _collect(_lines([_delta("a"), _delta("b", "stop"), _delta("never")]))
    assert chunks == [StreamChunk("a", False), StreamChunk("b", False), StreamChunk("", True)]


async def test_noise_lines_are_ignored() -> None:
    lines = [": keep-alive", "", "event: message", "data: {not json", _delta(""), _delta("x"), "data: [DONE]"]
    chunks = await _collect(_lines(lines))
    assert chunks == [StreamChunk("x", False), StreamChunk("", True)]


async def test_read_error_still_ends_with_single_done() -> None:
    async def broken() -> AsyncIterator[str]:
        yield _delta("a")
        yield _delta("b")
        yield _delta("c")
        raise httpx.ReadError("connection reset")

    chunks = await _collect(broken())
    assert [c.content for c in chunks] == ["a", "b", "c", ""]
    assert [c.done for c in chunks].count(True) == 1


async def test_empty_upstream_yields_only_done() -> None:
    chunks = await _collect(_lines([]))
    assert chunks == [StreamChunk("", True)]


def test_encode_sse_frame() -> None:
    assert encode_sse(StreamChunk("任务", False)) == 'data: {"content": "任务", "done": false}\n\n'
    assert encode_sse(StreamChunk("", True)) == 'data: {"content": "", "done": true}\n\n'


async def test_stream_closed_mid_read_still_ends_with_done() -> None:
    async def closed() -> AsyncIterator[str]:
        yield _delta("a")
        raise httpx.StreamClosed()

    chunks = await _collect(closed())
    assert chunks == [StreamChunk("a", False), StreamChunk("", True)]


async def test_finish_reason_then_upstream_error_ends_once() -> None:
    async def upstream() -> AsyncIterator[str]:
        yield _delta("一")
        yield _delta("二")
        yield _delta("三")
        yield "data: " + json.dumps({"choices": [{"delta": {}, "finish_reason": "stop"}]})
        raise httpx.ReadError("connection reset")

    chunks = await _collect(upstream())
    assert chunks == [
        StreamChunk("一", False),
        StreamChunk("二", False),
        StreamChunk("三", False),
        StreamChunk("", True),
    ]
