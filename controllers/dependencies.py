"""Accessors for shared services and the acting identity of a request."""

from fastapi import HTTPException, Request

from models.identity import ANONYMOUS, Authenticated, Identity
from services.openai.mistake_analyzer import MistakeAnalyzer
from services.persistence_facade import MistakePersistence


def get_identity(request: Request) -> Identity:
    """Authenticated when both `X-User-Id` and a bearer token are sent, otherwise anonymous."""
    user_id = (request.headers.get("X-User-Id") or "").strip()
    authorization = request.headers.get("Authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if user_id and scheme.lower() == "bearer" and token.strip():
        return Authenticated(user_id=user_id, id_token=token.strip())
    return ANONYMOUS


def get_persistence(request: Request) -> MistakePersistence:
    """Retrieve the shared persistence facade from the app state."""
    persistence = getattr(request.app.state, "persistence", None)
    if persistence is None:
        raise HTTPException(status_code=500, detail="Persistence not initialized.")
    return persistence


def get_analyzer(request: Request) -> MistakeAnalyzer:
    """Retrieve the shared analyzer from the app state."""
    analyzer = getattr(request.app.state, "analyzer", None)
    if analyzer is None:
        raise HTTPException(status_code=503, detail="AI analysis is not available (OPENAI_API_KEY not set).")
    return analyzer
