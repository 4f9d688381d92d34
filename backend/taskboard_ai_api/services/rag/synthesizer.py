from __future__ import annotations

import asyncio
import logging
import re
from typing import Literal, Protocol

from ...agent.providers.base import ModelProvider
from ...agent.types import ChatMessage
from .catalog import PropertyCatalog
from .errors import SqlValidationError
from .sql_guard import extract_sql, validate_read_only_sql


logger = logging.getLogger(__name__)

# Minimal board/block DDL handed to the model; card properties live under fields.properties.
SCHEMA_DDL = """
-- boards: 看板
CREATE TABLE boards (
  id TEXT PRIMARY KEY,
  team_id TEXT,
  title TEXT,
  description TEXT,
  card_properties TEXT,      -- JSON array of property definitions {id, name, type, options}
  create_at INTEGER,
  update_at INTEGER,
  delete_at INTEGER
);

-- blocks: 内容块（卡片、视图等），type='card' 代表卡片
CREATE TABLE blocks (
  id TEXT PRIMARY KEY,
  board_id TEXT,
  parent_id TEXT,
  root_id TEXT,
  type TEXT,                 -- e.g. 'card', 'view'
  title TEXT,
  fields TEXT,               -- JSON; card property values under $.properties.<propID>
  create_at INTEGER,
  update_at INTEGER,
  delete_at INTEGER
);
""".strip()

CARD_COLUMNS = "id, title, board_id, fields, update_at"
CARD_BASE_FILTER = "type='card' AND delete_at=0"
TEMPLATE_LIMIT = 50

DONE_SYNONYMS = ("已完成", "完成", "DONE")
IN_PROGRESS_SYNONYMS = ("进行中", "处理中", "IN PROGRESS")

_DONE_WORD_RE = re.compile(r"\bdone\b")

TemplateKind = Literal["my_tasks", "open", "done", "in_progress", "overdue"]


def _prop(pid: str) -> str:
    return f"json_extract(fields, '$.properties.{pid}')"


def _quoted_option_ids(options: dict[str, str], synonyms: tuple[str, ...]) -> list[str]:
    ids: list[str] = []
    for label in synonyms:
        oid = options.get(label.upper())
        if oid:
            ids.append(f"'{oid}'")
    return ids


def build_assignee_clause(user_id: str, catalog: PropertyCatalog | None) -> str:
    if catalog is None or not catalog.has_assignee_props:
        return ""
    parts = [f"{_prop(pid)} = '{user_id}'" for pid in catalog.person_prop_ids]
    parts += [
        f"EXISTS (SELECT 1 FROM json_each({_prop(pid)}) WHERE value = '{user_id}')"
        for pid in catalog.multi_person_prop_ids
    ]
    return " AND (" + " OR ".join(parts) + ")"


def build_status_open_clause(catalog: PropertyCatalog | None) -> str:
    if catalog is None or not catalog.status_prop_options:
        return ""
    parts: list[str] = []
    for sid, options in catalog.status_prop_options.items():
        done_ids = _quoted_option_ids(options, DONE_SYNONYMS)
        if done_ids:
            parts.append(f"({_prop(sid)} NOT IN ({','.join(done_ids)}) OR {_prop(sid)} IS NULL)")
        else:
            parts.append(f"({_prop(sid)} IS NULL)")
    return " AND (" + " OR ".join(parts) + ")"


def _status_in_clause(catalog: PropertyCatalog | None, synonyms: tuple[str, ...]) -> str:
    if catalog is None or not catalog.status_prop_options:
        return ""
    parts: list[str] = []
    for sid, options in catalog.status_prop_options.items():
        ids = _quoted_option_ids(options, synonyms)
        if ids:
            parts.append(f"{_prop(sid)} IN ({','.join(ids)})")
    if not parts:
        return ""
    return " AND (" + " OR ".join(parts) + ")"


def build_status_done_clause(catalog: PropertyCatalog | None) -> str:
    return _status_in_clause(catalog, DONE_SYNONYMS)


def build_status_progress_clause(catalog: PropertyCatalog | None) -> str:
    return _status_in_clause(catalog, IN_PROGRESS_SYNONYMS)


def build_overdue_clause(catalog: PropertyCatalog | None) -> str:
    parts: list[str] = []
    if catalog is not None:
        for did in catalog.date_prop_ids:
            start = f"json_extract({_prop(did)}, '$.from')"
            parts.append(f"({start} IS NOT NULL AND {start} < (strftime('%s','now')*1000))")
    clause = " AND (" + " OR ".join(parts) + ")" if parts else ""
    return clause + build_status_open_clause(catalog)


def match_template(question: str) -> TemplateKind | None:
    q = (question or "").strip().lower()
    if "查询我的任务" in q or "我的任务" in q or "my task" in q or ("任务" in q and "我" in q):
        return "my_tasks"
    if "代办" in q or "未完成" in q or "待办" in q or "to do" in q or "todo" in q:
        return "open"
    if "已完成" in q or ("完成" in q and "未完成" not in q) or _DONE_WORD_RE.search(q):
        return "done"
    if "进行中" in q or "in progress" in q:
        return "in_progress"
    if any(k in q for k in ("逾期", "过期", "过了截止日期", "截止日期已过", "已过期", "overdue")):
        return "overdue"
    return None


class SqlStrategy(Protocol):
    async def generate(self, question: str, user_id: str, catalog: PropertyCatalog | None) -> str: ...


class TemplateSqlStrategy:
    def __init__(self, kind: TemplateKind) -> None:
        self.kind = kind

    def _filter_clause(self, catalog: PropertyCatalog | None) -> str:
        if self.kind == "open":
            return build_status_open_clause(catalog)
        if self.kind == "done":
            return build_status_done_clause(catalog)
        if self.kind == "in_progress":
            return build_status_progress_clause(catalog)
        if self.kind == "overdue":
            return build_overdue_clause(catalog)
        return ""

    async def generate(self, question: str, user_id: str, catalog: PropertyCatalog | None) -> str:
        _ = question
        return (
            f"SELECT {CARD_COLUMNS} FROM blocks WHERE {CARD_BASE_FILTER}"
            + build_assignee_clause(user_id, catalog)
            + self._filter_clause(catalog)
            + f" ORDER BY update_at DESC LIMIT {TEMPLATE_LIMIT}"
        )


def text_to_sql_prompt(schema: str, user_id: str, question: str) -> str:
    return (
        "你是一个 Text-to-SQL 助手。请根据给定的数据库结构 (DDL) 和用户问题，生成一个只读、安全的 SQL。\n"
        "要求：\n"
        "- 只生成单条 SELECT 语句，不要包含任何其它内容（不要包含注释、解释、分号）。\n"
        "- 数据库类型为 sqlite；卡片属性位于 blocks.fields.properties 下，键为动态属性ID，"
        "例如使用 json_extract(fields, '$.properties.<propID>') 访问。\n"
        f"- 当前用户 user_id 为 '{user_id}'：必须包含对该用户的约束，例如使用人员属性（person 或 multiPerson）"
        "筛选分配给该用户的卡片。\n"
        "- 只查询未删除的数据（delete_at=0），type='card' 代表卡片。\n"
        "- 如果问题涉及看板或卡片统计，请合理连接 boards 与 blocks。\n"
        "- 尽量只返回必要的字段：例如卡片 id、title、board_id、状态、到期时间、更新时间等。\n\n"
        f"数据库结构（DDL）：\n{schema}\n\n"
        f"用户问题：\n{question}\n\n"
        "只输出最终 SQL（仅一行 SELECT 开头的语句），不要任何其它文字。"
    )


class LlmSqlStrategy:
    def __init__(
        self,
        provider: ModelProvider,
        *,
        model: str,
        timeout_seconds: float = 30.0,
        schema: str = SCHEMA_DDL,
    ) -> None:
        self._provider = provider
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._schema = schema

    async def generate(self, question: str, user_id: str, catalog: PropertyCatalog | None) -> str:
        _ = catalog
        prompt = text_to_sql_prompt(self._schema, user_id, question)
        raw = await asyncio.wait_for(
            self._provider.complete(
                model=self._model,
                messages=[ChatMessage(role="user", content=prompt)],
                temperature=0.2,
                max_tokens=800,
            ),
            timeout=self._timeout_seconds,
        )
        sql = extract_sql(raw.strip())
        logger.debug("text-to-sql raw_output=%r extracted_sql=%r", raw, sql)
        return sql


class SqlSynthesizer:
    def __init__(self, llm_strategy: SqlStrategy) -> None:
        self._llm_strategy = llm_strategy

    def strategy_for(self, question: str) -> SqlStrategy:
        kind = match_template(question)
        if kind is not None:
            return TemplateSqlStrategy(kind)
        return self._llm_strategy

    async def synthesize(self, question: str, user_id: str, catalog: PropertyCatalog | None) -> str:
        strategy = self.strategy_for(question)
        sql = await strategy.generate(question, user_id, catalog)
        try:
            validate_read_only_sql(sql)
        except SqlValidationError:
            logger.error("generated SQL failed validation strategy=%s sql=%r", type(strategy).__name__, sql)
            raise
        return sql
