from __future__ import annotations


class RagError(RuntimeError):
    pass


class IntentIsChatError(RagError):
    """Not a failure: the question is conversational and should go to plain chat."""

    def __init__(self) -> None:
        super().__init__("intent is chat, RAG not applicable")


class UnknownIntentError(RagError):
    def __init__(self, intent: str) -> None:
        super().__init__(f"unknown intent, RAG not applicable: {intent}")
        self.intent = intent


class SqlValidationError(RagError):
    pass


class EmptySQLError(SqlValidationError):
    def __init__(self) -> None:
        super().__init__("generated SQL is empty")


class NotSelectError(SqlValidationError):
    def __init__(self, sql: str) -> None:
        super().__init__(f"only SELECT is allowed: {sql}")
        self.sql = sql


class ForbiddenKeywordError(SqlValidationError):
    def __init__(self, keyword: str) -> None:
        super().__init__(f"forbidden keyword in SQL: {keyword}")
        self.keyword = keyword


class ForbiddenCharacterError(SqlValidationError):
    def __init__(self, token: str) -> None:
        super().__init__(f"forbidden characters in SQL: {token}")
        self.token = token


class UnsupportedStorageError(RagError):
    def __init__(self, db_type: str) -> None:
        super().__init__(f"RAG query execution supports sqlite3 only, got {db_type!r}")
        self.db_type = db_type


class CatalogDiscoveryError(RagError):
    pass


class QueryExecutionError(RagError):
    pass
