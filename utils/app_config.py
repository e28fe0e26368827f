"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class AppConfig:
    """Settings read once at startup.

    Attributes:
        database_dir: Directory holding the local SQLite file.
        openai_api_key: Key for the inference provider; inference routes fail without it.
        model: Model identifier used for every inference call.
        firebase_project_id: Firestore project; cloud mode needs this and the bucket.
        firebase_storage_bucket: Firebase Storage bucket for uploaded images.
        upload_timeout_seconds: Upper bound for a single image upload.
        log_level: Root logging level name.
    """

    database_dir: Optional[str]
    openai_api_key: Optional[str]
    model: str = DEFAULT_MODEL
    firebase_project_id: Optional[str] = None
    firebase_storage_bucket: Optional[str] = None
    upload_timeout_seconds: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    log_level: str = "INFO"

    @property
    def cloud_enabled(self) -> bool:
        return bool(self.firebase_project_id and self.firebase_storage_bucket)

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "AppConfig":
        """Build settings from the environment, loading `.env` first when present."""
        if load_env_file:
            load_dotenv()

        timeout_raw = os.getenv("UPLOAD_TIMEOUT_SECONDS")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_UPLOAD_TIMEOUT_SECONDS
        except ValueError as exc:
            raise RuntimeError(
                f"UPLOAD_TIMEOUT_SECONDS={timeout_raw!r} is not a number"
            ) from exc

        return cls(
            database_dir=os.getenv("DATABASE_DIR"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("SMARTNOTE_MODEL") or DEFAULT_MODEL,
            firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
            firebase_storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET") or None,
            upload_timeout_seconds=timeout,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )
