from __future__ import annotations

import re

from .errors import (
    EmptySQLError,
    ForbiddenCharacterError,
    ForbiddenKeywordError,
    NotSelectError,
)


# Denylist, not a parser: a SELECT whose string literal contains "--" is rejected too.
FORBIDDEN_KEYWORDS = ("DELETE", "UPDATE", "DROP", "INSERT", "TRUNCATE", "ALTER")
FORBIDDEN_TOKENS = (";", "--", "/*")

_KEYWORD_RES = [(kw, re.compile(rf"\b{kw}\b")) for kw in FORBIDDEN_KEYWORDS]
_FENCED_SQL_RE = re.compile(r"```sql\s*(SELECT[\s\S]*?)```", re.IGNORECASE)


def validate_read_only_sql(sql: str) -> None:
    if not sql:
        raise EmptySQLError()

    upper = sql.strip().upper()
    if not upper.startswith("SELECT"):
        raise NotSelectError(sql)

    for keyword, pattern in _KEYWORD_RES:
        if pattern.search(upper):
            raise ForbiddenKeywordError(keyword)

    for token in FORBIDDEN_TOKENS:
        if token in upper:
            raise ForbiddenCharacterError(token)


def extract_sql(text: str) -> str:
    """
    Pull a statement out of free-form model output.

    Preference order: a fenced ```sql block, then the first line starting with SELECT,
    then the raw text. The result must still go through `validate_read_only_sql`.
    """

    raw = text or ""
    m = _FENCED_SQL_RE.search(raw)
    if m:
        return m.group(1).strip()

    for line in raw.splitlines():
        line = line.strip()
        if line.upper().startswith("SELECT"):
            return line.rstrip(";")

    return raw.strip().rstrip(";")
