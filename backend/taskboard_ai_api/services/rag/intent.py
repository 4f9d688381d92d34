from __future__ import annotations

import asyncio
import logging
from typing import Literal

from ...agent.providers.base import ModelProvider
from ...agent.types import ChatMessage


logger = logging.getLogger(__name__)

Intent = Literal["chat", "query_data", "unknown"]

INTENT_CHAT: Intent = "chat"
INTENT_QUERY_DATA: Intent = "query_data"
INTENT_UNKNOWN: Intent = "unknown"

_TASK_WORDS = ("任务", "task")
_QUERY_HINTS = (
    "查询",
    "代办",
    "待办",
    "进行中",
    "未完成",
    "完成",
    "已完成",
    "逾期",
    "过期",
    "截止",
    "到期",
    "overdue",
    "in progress",
    "done",
    "to do",
    "todo",
)


def _mentions_own_tasks(q: str) -> bool:
    if "查询我的任务" in q or "我的任务" in q or "my task" in q:
        return True
    return "任务" in q and "我" in q


def classify_by_rules(question: str) -> Intent | None:
    """Keyword pass that never calls the model; returns None when no rule fires."""

    q = (question or "").strip().lower()
    if _mentions_own_tasks(q):
        return INTENT_QUERY_DATA
    if any(w in q for w in _TASK_WORDS) and any(k in q for k in _QUERY_HINTS):
        return INTENT_QUERY_DATA
    return None


def parse_intent(text: str) -> Intent:
    ans = (text or "").strip().lower()
    if INTENT_QUERY_DATA in ans:
        return INTENT_QUERY_DATA
    if INTENT_CHAT in ans:
        return INTENT_CHAT
    return INTENT_UNKNOWN


def _classification_prompt(question: str) -> str:
    return (
        "你是一个分类器。请只输出一个词：chat 或 query_data。\n"
        "规则：\n"
        "- 当用户是在闲聊、问候、或没有明确要求查询项目数据时，输出 chat。\n"
        "- 当用户在请求和看板项目数据相关的统计、筛选、列表、进度等查询时，输出 query_data。\n\n"
        f"用户问题：\n{question}\n\n"
        "只输出 chat 或 query_data，不要多余解释。"
    )


class IntentClassifier:
    def __init__(self, provider: ModelProvider, *, model: str, timeout_seconds: float = 30.0) -> None:
        self._provider = provider
        self._model = model
        self._timeout_seconds = timeout_seconds

    async def classify(self, question: str) -> Intent:
        ruled = classify_by_rules(question)
        if ruled is not None:
            logger.debug("intent keyword rule matched intent=%s", ruled)
            return ruled

        # Provider errors and timeouts propagate: only an unparseable answer defaults to chat.
        raw = await asyncio.wait_for(
            self._provider.complete(
                model=self._model,
                messages=[ChatMessage(role="user", content=_classification_prompt(question))],
                temperature=0.2,
                max_tokens=800,
            ),
            timeout=self._timeout_seconds,
        )
        intent = parse_intent(raw)
        if intent == INTENT_UNKNOWN:
            logger.warning("intent classification matched neither label, defaulting to chat raw_output=%r", raw)
            return INTENT_CHAT
        logger.debug("intent classified by model intent=%s", intent)
        return intent
