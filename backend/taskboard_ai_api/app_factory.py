from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .routers import ai
from .services.rag.demo_db import ensure_demo_board_db


logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    # basicConfig is a no-op when the root logger already has handlers (uvicorn, pytest).
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    logging.getLogger("taskboard_ai_api").setLevel(level.upper())


def create_app(settings: Settings) -> FastAPI:
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ANN001
        if settings.seed_demo_db:
            await asyncio.to_thread(ensure_demo_board_db, settings.db_path)
            logger.info("demo board database ready path=%s", settings.db_path)
        yield

    app = FastAPI(title="Taskboard AI API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ai.router, prefix="/api")

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    return app
