import inspect
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.mistake_dal import LocalMistakeStore
from routes.mistake_route import router as mistake_router
from services.cloud.blob_client import FirebaseBlobClient
from services.cloud.document_client import FirestoreDocumentClient
from services.openai.mistake_analyzer import MistakeAnalyzer
from services.persistence_facade import MistakePersistence
from services.remote_store import RemoteMistakeStore
from utils.app_config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)


async def _close_quietly(client) -> None:
    """Close a client exposing `aclose`/`close`, ignoring shutdown errors."""
    if client is None:
        return
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:  # pylint: disable=broad-exception-caught
        LOGGER.warning("Error while closing %s: %s", type(client).__name__, exc)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    The lifespan builds the service objects once and attaches them to
    `app.state`:
      - `persistence`: local SQLite store plus, when Firebase is configured, the cloud store
      - `analyzer`: the OpenAI-backed analyzer, or None without OPENAI_API_KEY
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = config or AppConfig.from_env()
        logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

        db_initializer = AsyncDatabaseInitializer(settings.database_dir)
        await db_initializer.ensure_database()
        app.state.db_initializer = db_initializer

        http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=120.0))
        app.state.http_client = http_client

        remote: Optional[RemoteMistakeStore] = None
        if settings.cloud_enabled:
            remote = RemoteMistakeStore(
                FirestoreDocumentClient(http_client, settings.firebase_project_id),
                FirebaseBlobClient(http_client, settings.firebase_storage_bucket),
                upload_timeout=settings.upload_timeout_seconds,
            )
        else:
            LOGGER.info("Firebase is not configured; only local storage is available")
        app.state.persistence = MistakePersistence(LocalMistakeStore(db_initializer), remote)

        openai_client: Optional[AsyncOpenAI] = None
        if settings.openai_api_key:
            try:
                openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
            except Exception as exc:
                raise RuntimeError("Failed to initialize OpenAI Async client") from exc
            app.state.analyzer = MistakeAnalyzer(openai_client, http_client, model=settings.model)
        else:
            LOGGER.warning("OPENAI_API_KEY is missing. AI analysis will not work.")
            app.state.analyzer = None
        app.state.openai_client = openai_client

        try:
            yield
        finally:
            await _close_quietly(openai_client)
            await _close_quietly(http_client)

    app = FastAPI(title="SmartNote", lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which backends are wired up.
        """
        persistence = getattr(request.app.state, "persistence", None)
        return {
            "ok": True,
            "db_initialized": hasattr(request.app.state, "db_initializer"),
            "cloud_enabled": bool(persistence and persistence.remote is not None),
            "openai_available": getattr(request.app.state, "analyzer", None) is not None,
        }

    app.include_router(mistake_router)

    return app


app = create_app()
