from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal


ChatRole = Literal["system", "user", "assistant"]


@dataclass
class ChatMessage:
    role: ChatRole
    content: str | None = None

    def to_openai(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content or ""}


@dataclass(frozen=True)
class StreamChunk:
    """One outbound event of the chat stream; the last one of a stream has ``done=True``."""

    content: str
    done: bool

    def to_json(self) -> str:
        return json.dumps({"content": self.content, "done": self.done}, ensure_ascii=False)
