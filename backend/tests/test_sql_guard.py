from __future__ import annotations

import pytest

from taskboard_ai_api.services.rag.errors import (
    EmptySQLError,
    ForbiddenCharacterError,
    ForbiddenKeywordError,
    NotSelectError,
    SqlValidationError,
)
from taskboard_ai_api.services.rag.sql_guard import extract_sql, validate_read_only_sql


def test_plain_select_passes() -> None:
    validate_read_only_sql("SELECT id, title FROM blocks WHERE type='card' AND delete_at=0")


def test_leading_whitespace_and_lowercase_select_passes() -> None:
    validate_read_only_sql("   select id from blocks")


def test_columns_named_like_keywords_pass() -> None:
    validate_read_only_sql("SELECT id FROM blocks ORDER BY update_at DESC")
    validate_read_only_sql("SELECT id FROM blocks WHERE delete_at=0")


def test_empty_sql_rejected() -> None:
    with pytest.raises(EmptySQLError):
        validate_read_only_sql("")


@pytest.mark.parametrize("sql", ["DELETE FROM blocks", "WITH x AS (SELECT 1) SELECT * FROM x", "   "])
def test_non_select_rejected(sql: str) -> None:
    with pytest.raises(NotSelectError):
        validate_read_only_sql(sql)


def test_forbidden_keyword_rejected() -> None:
    with pytest.raises(ForbiddenKeywordError) as exc:
        validate_read_only_sql("SELECT * FROM blocks WHERE id IN (SELECT id FROM x) union select 1 from (drop table x)")
    assert exc.value.keyword == "DROP"


def test_keyword_check_is_case_insensitive() -> None:
    with pytest.raises(ForbiddenKeywordError):
        validate_read_only_sql("select * from blocks where title = 'x' or 1=1 and exists (select 1) update")


@pytest.mark.parametrize(
    ("sql", "token"),
    [
        ("SELECT id FROM blocks; SELECT 1", ";"),
        ("SELECT id FROM blocks -- comment", "--"),
        ("SELECT id /* c */ FROM blocks", "/*"),
    ],
)
def test_forbidden_tokens_rejected(sql: str, token: str) -> None:
    with pytest.raises(ForbiddenCharacterError) as exc:
        validate_read_only_sql(sql)
    assert exc.value.token == token


def test_denylist_rejects_dashes_inside_literals() -> None:
    with pytest.raises(SqlValidationError):
        validate_read_only_sql("SELECT id FROM blocks WHERE title = 'a--b'")


def test_extract_sql_prefers_fenced_block() -> None:
    text = "好的，SQL 如下：\n```sql\nSELECT id FROM blocks WHERE delete_at=0\n```\n以上。"
    assert extract_sql(text) == "SELECT id FROM blocks WHERE delete_at=0"


def test_extract_sql_takes_first_select_line_and_strips_semicolon() -> None:
    text = "Here you go:\nSELECT id FROM blocks;\nSELECT 2"
    assert extract_sql(text) == "SELECT id FROM blocks"


def test_extract_sql_falls_back_to_raw_text() -> None:
    assert extract_sql("  DELETE FROM blocks; ") == "DELETE FROM blocks"
