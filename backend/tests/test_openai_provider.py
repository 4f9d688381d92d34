from __future__ import annotations

import json

import httpx
import pytest

from taskboard_ai_api.agent.providers.base import EmptyChoiceError, MissingCredentialError, UpstreamLLMError
from taskboard_ai_api.agent.providers.mock_provider import sse_lines_for
from taskboard_ai_api.agent.providers.openai_provider import OpenAiProvider, describe_upstream_error
from taskboard_ai_api.agent.types import ChatMessage


MESSAGES = [ChatMessage(role="user", content="你好")]


def _provider(handler, **kwargs) -> OpenAiProvider:  # noqa: ANN001
    return OpenAiProvider(api_key="sk-test", transport=httpx.MockTransport(handler), **kwargs)


async def test_complete_posts_chat_completions() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "chat"}}]})

    text = await _provider(handler).complete(model="qwen-plus", messages=MESSAGES, temperature=0.2, max_tokens=800)

    assert text == "chat"
    assert seen["url"] == "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["stream"] is False
    assert seen["body"]["temperature"] == 0.2
    assert seen["body"]["max_tokens"] == 800
    assert seen["body"]["messages"] == [{"role": "user", "content": "你好"}]


async def test_base_url_without_v1_is_normalized() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    await _provider(handler, base_url="http://llm.local/").complete(
        model="m", messages=MESSAGES, temperature=0.2, max_tokens=10
    )
    assert seen == ["http://llm.local/v1/chat/completions"]


async def test_missing_key_raises_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = OpenAiProvider(api_key=None, transport=httpx.MockTransport(handler))
    with pytest.raises(MissingCredentialError):
        await provider.complete(model="m", messages=MESSAGES, temperature=0.2, max_tokens=10)


async def test_error_status_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API-key provided."}})

    with pytest.raises(UpstreamLLMError) as exc:
        await _provider(handler).complete(model="m", messages=MESSAGES, temperature=0.2, max_tokens=10)
    assert exc.value.status_code == 401
    assert describe_upstream_error(exc.value) == "AI API error: 401 (Invalid API-key provided.)"


async def test_empty_choices_raise() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(EmptyChoiceError):
        await _provider(handler).complete(model="m", messages=MESSAGES, temperature=0.2, max_tokens=10)


async def test_open_stream_yields_sse_lines() -> None:
    body = "\n".join(sse_lines_for("好的")) + "\n"

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        assert payload["stream"] is True
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    async with _provider(handler).open_stream(
        model="m", messages=MESSAGES, temperature=0.7, max_tokens=2000
    ) as lines:
        received = [line async for line in lines]

    assert received[-1] == "data: [DONE]"
    assert sum(1 for line in received if line.startswith("data: {")) == 3


async def test_open_stream_error_status_raises_on_enter() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="overloaded")

    with pytest.raises(UpstreamLLMError) as exc:
        async with _provider(handler).open_stream(model="m", messages=MESSAGES, temperature=0.7, max_tokens=2000):
            pass
    assert exc.value.status_code == 503
    assert exc.value.body == "overloaded"
    assert describe_upstream_error(exc.value) == "AI API error: 503"


async def test_non_object_message_is_empty_choice() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": "oops"}]})

    with pytest.raises(EmptyChoiceError):
        await _provider(handler).complete(model="m", messages=MESSAGES, temperature=0.2, max_tokens=10)
