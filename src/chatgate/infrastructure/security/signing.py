"""HMAC request signing and replay protection for the chat server link.

Signatures are hex HMAC-SHA256 over ``"<timestamp>.<nonce>.<body>"``.

The outbound sender only uses ``signature_headers``. The verification
helpers (``verify_signature``, ``is_timestamp_fresh``, ``NonceWindow``,
``is_ip_allowed``, ``resolve_request_ip``) are for the host process that
receives webhook calls from the chat server; it reads its limits from
``SecurityConfig``.
"""

from __future__ import annotations

import hashlib
import hmac
import threading
from typing import Mapping
from uuid import uuid4

TIMESTAMP_HEADER = "x-test-timestamp"
NONCE_HEADER = "x-test-nonce"
SIGNATURE_HEADER = "x-test-signature"


def create_signature(*, secret: str, timestamp: int, nonce: str, body: str) -> str:
    message = f"{timestamp}.{nonce}.{body}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    *,
    secret: str,
    timestamp: int,
    nonce: str,
    body: str,
    signature: str,
) -> bool:
    expected = create_signature(secret=secret, timestamp=timestamp, nonce=nonce, body=body)
    return hmac.compare_digest(expected, signature or "")


def generate_nonce() -> str:
    return str(uuid4())


def signature_headers(*, secret: str, timestamp: int, body: str) -> dict[str, str]:
    """Headers carrying a fresh nonce and the signature for ``body``."""
    nonce = generate_nonce()
    return {
        TIMESTAMP_HEADER: str(timestamp),
        NONCE_HEADER: nonce,
        SIGNATURE_HEADER: create_signature(
            secret=secret, timestamp=timestamp, nonce=nonce, body=body
        ),
    }


def is_timestamp_fresh(*, timestamp: int, now: int, skew_ms: int) -> bool:
    return abs(now - timestamp) <= skew_ms


def is_ip_allowed(allowed: list[str], ip: str | None) -> bool:
    """An empty list allows everyone; ``*`` allows any known address."""
    if not allowed:
        return True
    if not ip:
        return False
    if "*" in allowed:
        return True
    normalized = ip.lower()
    return any(entry.lower() == normalized for entry in allowed)


def resolve_request_ip(headers: Mapping[str, str], remote: str | None) -> str | None:
    """Client address, preferring the first ``X-Forwarded-For`` hop."""
    forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
    if forwarded and forwarded.strip():
        return forwarded.split(",")[0].strip() or None
    return remote


class NonceWindow:
    """Remembers nonces per account to reject replayed requests."""

    def __init__(self) -> None:
        self._seen: dict[str, dict[str, int]] = {}
        self._lock = threading.Lock()

    def check_and_store(self, *, account_id: str, nonce: str, now: int, window_ms: int) -> bool:
        """Return False if ``nonce`` was already seen inside the window."""
        cutoff = now - window_ms
        with self._lock:
            store = self._seen.setdefault(account_id, {})
            for key in [key for key, seen_at in store.items() if seen_at < cutoff]:
                del store[key]
            if nonce in store:
                return False
            store[nonce] = now
            return True
