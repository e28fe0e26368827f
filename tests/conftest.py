from __future__ import annotations

from pathlib import Path

import pytest

from dal.mistake_dal import LocalMistakeStore
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def db_initializer(tmp_path: Path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def local_store(db_initializer: AsyncDatabaseInitializer) -> LocalMistakeStore:
    return LocalMistakeStore(db_initializer)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DATABASE_DIR", "OPENAI_API_KEY", "FIREBASE_PROJECT_ID", "FIREBASE_STORAGE_BUCKET"):
        monkeypatch.delenv(name, raising=False)
