"""Who is acting: an anonymous local user or an authenticated cloud user."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Anonymous:
    """No signed-in user; records live in the local store."""


@dataclass(frozen=True)
class Authenticated:
    """Signed-in user; records live in that user's cloud collection.

    Attributes:
        user_id: Firebase Auth uid that scopes the collection and blob paths.
        id_token: Firebase ID token sent as the bearer credential.
    """

    user_id: str
    id_token: str

    def __repr__(self) -> str:
        return f"Authenticated(user_id={self.user_id!r})"


Identity = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


def resolve_identity(identity: Optional[Identity]) -> Identity:
    """Treat a missing identity as anonymous."""
    return ANONYMOUS if identity is None else identity
