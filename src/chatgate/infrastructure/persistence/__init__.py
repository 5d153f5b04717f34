"""Pairing and session persistence implementations."""

from chatgate.infrastructure.persistence.allow_from_store import (
    FileAllowFromStore,
    InMemoryAllowFromStore,
)
from chatgate.infrastructure.persistence.session_store import (
    FileSessionStore,
    InMemorySessionStore,
)

__all__ = [
    "FileAllowFromStore",
    "InMemoryAllowFromStore",
    "FileSessionStore",
    "InMemorySessionStore",
]
