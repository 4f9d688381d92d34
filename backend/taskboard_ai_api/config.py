from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import make_url


ENV_PREFIX = "TASKBOARD_AI_"

DEFAULT_MODEL = "qwen-plus"
DEFAULT_LLM_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
DEFAULT_DB_PATH = "./focalboard.db"


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _storage_from_url(db_url: str) -> tuple[str, str]:
    """Split a SQLAlchemy-style URL (``sqlite:///boards.db``) into (db_type, path)."""

    url = make_url(db_url)
    backend = url.get_backend_name()
    db_type = "sqlite3" if backend == "sqlite" else backend
    return db_type, url.database or ""


@dataclass(frozen=True)
class Settings:
    app_root: Path
    provider: str
    db_type: str
    db_path: str
    busy_timeout_ms: int
    llm_api_key: str | None
    llm_base_url: str
    model: str
    llm_timeout_seconds: float
    chat_timeout_seconds: float
    fallback_limit: int
    cors_origins: list[str]
    log_level: str
    seed_demo_db: bool


def load_settings() -> Settings:
    repo_root = Path(__file__).resolve().parents[2]

    db_type = (_env_str(f"{ENV_PREFIX}DB_TYPE", "sqlite3") or "sqlite3").strip().lower()
    db_path = _env_str(f"{ENV_PREFIX}DB_PATH", DEFAULT_DB_PATH) or DEFAULT_DB_PATH
    db_url = (_env_str(f"{ENV_PREFIX}DB_URL", "") or "").strip()
    if db_url:
        db_type, db_path = _storage_from_url(db_url)

    api_key = _env_str("DASHSCOPE_API_KEY", None) or _env_str("OPENAI_API_KEY", None)

    cors_origins = [
        origin.strip()
        for origin in (
            _env_str(f"{ENV_PREFIX}CORS_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000") or ""
        ).split(",")
        if origin.strip()
    ]

    return Settings(
        app_root=repo_root,
        provider=(_env_str(f"{ENV_PREFIX}PROVIDER", "openai") or "openai").strip().lower(),
        db_type=db_type,
        db_path=db_path,
        busy_timeout_ms=max(0, _env_int(f"{ENV_PREFIX}BUSY_TIMEOUT_MS", 5000)),
        llm_api_key=api_key,
        llm_base_url=_env_str(f"{ENV_PREFIX}LLM_BASE_URL", DEFAULT_LLM_BASE_URL) or DEFAULT_LLM_BASE_URL,
        model=_env_str(f"{ENV_PREFIX}MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
        llm_timeout_seconds=max(1.0, _env_float(f"{ENV_PREFIX}LLM_TIMEOUT_SECONDS", 30.0)),
        chat_timeout_seconds=max(1.0, _env_float(f"{ENV_PREFIX}CHAT_TIMEOUT_SECONDS", 120.0)),
        fallback_limit=max(1, _env_int(f"{ENV_PREFIX}FALLBACK_LIMIT", 50)),
        cors_origins=cors_origins,
        log_level=(_env_str(f"{ENV_PREFIX}LOG_LEVEL", "INFO") or "INFO").upper(),
        seed_demo_db=_env_bool(f"{ENV_PREFIX}SEED_DEMO_DB", False),
    )
