from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import AsyncIterator, Protocol

from ..types import ChatMessage


class LLMError(RuntimeError):
    pass


class MissingCredentialError(LLMError):
    def __init__(self, name: str = "DASHSCOPE_API_KEY") -> None:
        super().__init__(f"{name} is not set")
        self.name = name


class UpstreamLLMError(LLMError):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"LLM api error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class EmptyChoiceError(LLMError):
    def __init__(self) -> None:
        super().__init__("empty choices from LLM")


class ModelProvider(Protocol):
    name: str

    async def complete(
        self,
        *,
        model: str,
        messages: list[ChatMessage],
        temperature: float,
        max_tokens: int,
    ) -> str: ...

    def open_stream(
        self,
        *,
        model: str,
        messages: list[ChatMessage],
        temperature: float,
        max_tokens: int,
    ) -> AbstractAsyncContextManager[AsyncIterator[str]]: ...
