from __future__ import annotations

from pathlib import Path

import pytest

from taskboard_ai_api.agent.providers.mock_provider import MockProvider


TEST_USER_ID = "u1"


@pytest.fixture
def board_db(tmp_path: Path) -> str:
    from taskboard_ai_api.services.rag.demo_db import ensure_demo_board_db

    path = str(tmp_path / "focalboard.db")
    ensure_demo_board_db(path, user_id=TEST_USER_ID)
    return path


@pytest.fixture
def settings(board_db: str, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("TASKBOARD_AI_DB_TYPE", "sqlite3")
    monkeypatch.setenv("TASKBOARD_AI_DB_PATH", board_db)
    monkeypatch.delenv("TASKBOARD_AI_DB_URL", raising=False)
    monkeypatch.setenv("TASKBOARD_AI_PROVIDER", "openai")
    monkeypatch.setenv("TASKBOARD_AI_SEED_DEMO_DB", "0")
    monkeypatch.setenv("DASHSCOPE_API_KEY", "test-key")

    from taskboard_ai_api.config import load_settings

    return load_settings()


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def app(settings, provider: MockProvider):  # noqa: ANN001
    from taskboard_ai_api.app_factory import create_app
    from taskboard_ai_api.deps import get_provider

    application = create_app(settings)
    application.dependency_overrides[get_provider] = lambda: provider
    return application


@pytest.fixture
async def client(app):  # noqa: ANN001
    import httpx

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
