from __future__ import annotations

import asyncio
import logging

from ...agent.providers.base import ModelProvider
from ...config import Settings
from .catalog import PropertyCatalog, discover_property_catalog
from .errors import CatalogDiscoveryError, IntentIsChatError, RagError, UnknownIntentError
from .executor import QueryExecutor
from .intent import INTENT_CHAT, INTENT_QUERY_DATA, IntentClassifier
from .prompt import compose_final_prompt
from .synthesizer import CARD_BASE_FILTER, CARD_COLUMNS, LlmSqlStrategy, SqlSynthesizer


logger = logging.getLogger(__name__)

EMPTY_RESULT = "[]"


def fallback_sql(limit: int = 50) -> str:
    return (
        f"SELECT {CARD_COLUMNS} FROM blocks WHERE {CARD_BASE_FILTER} "
        f"ORDER BY update_at DESC LIMIT {int(limit)}"
    )


class RagService:
    """
    Question -> augmented prompt.

    `prepare` raises `IntentIsChatError` / `UnknownIntentError` when the question should not be
    augmented, and lets every other failure surface once; callers fall back to plain chat.
    """

    def __init__(
        self,
        *,
        provider: ModelProvider,
        model: str,
        db_type: str,
        db_path: str,
        busy_timeout_ms: int = 5000,
        llm_timeout_seconds: float = 30.0,
        fallback_limit: int = 50,
    ) -> None:
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._fallback_limit = fallback_limit
        self.classifier = IntentClassifier(provider, model=model, timeout_seconds=llm_timeout_seconds)
        self.synthesizer = SqlSynthesizer(
            LlmSqlStrategy(provider, model=model, timeout_seconds=llm_timeout_seconds)
        )
        self.executor = QueryExecutor(db_type=db_type, db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    @classmethod
    def from_settings(cls, settings: Settings, provider: ModelProvider) -> "RagService":
        return cls(
            provider=provider,
            model=settings.model,
            db_type=settings.db_type,
            db_path=settings.db_path,
            busy_timeout_ms=settings.busy_timeout_ms,
            llm_timeout_seconds=settings.llm_timeout_seconds,
            fallback_limit=settings.fallback_limit,
        )

    async def discover_catalog(self) -> PropertyCatalog:
        try:
            return await asyncio.to_thread(discover_property_catalog, self._db_path, self._busy_timeout_ms)
        except CatalogDiscoveryError as e:
            logger.warning("property discovery failed, continuing without dynamic properties: %s", e)
            return PropertyCatalog.empty()

    async def _execute(self, sql: str) -> str:
        return await asyncio.to_thread(self.executor.execute, sql)

    async def _with_fallback(self, context_json: str) -> str:
        if context_json.strip() != EMPTY_RESULT:
            return context_json
        sql = fallback_sql(self._fallback_limit)
        logger.warning("primary query returned no rows, applying fallback query sql=%s", sql)
        try:
            return await self._execute(sql)
        except RagError as e:
            logger.error("fallback query failed, keeping empty result: %s", e)
            return context_json

    async def prepare(self, user_id: str, question: str) -> str:
        logger.debug("rag pipeline started user_id=%s", user_id)

        intent = await self.classifier.classify(question)
        if intent == INTENT_CHAT:
            logger.debug("intent is chat, skipping augmentation")
            raise IntentIsChatError()
        if intent != INTENT_QUERY_DATA:
            logger.warning("unknown intent, skipping augmentation intent=%s", intent)
            raise UnknownIntentError(intent)

        catalog = await self.discover_catalog()
        sql = await self.synthesizer.synthesize(question, user_id, catalog)
        logger.debug("sql synthesized sql=%s", sql)

        context_json = await self._execute(sql)
        context_json = await self._with_fallback(context_json)

        logger.debug("rag pipeline complete context_chars=%d", len(context_json))
        return compose_final_prompt(question, context_json)
