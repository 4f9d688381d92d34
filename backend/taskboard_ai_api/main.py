from __future__ import annotations

from dotenv import load_dotenv
from pathlib import Path

from .config import load_settings
from .app_factory import create_app


_REPO_ROOT = Path(__file__).resolve().parents[2]
# Repo `.env` wins over variables already exported in the shell.
load_dotenv(dotenv_path=_REPO_ROOT / ".env", override=True)
settings = load_settings()

app = create_app(settings)
