"""Allow-from and pairing-request stores implementing AllowFromStoreProtocol.

Approved senders and pending pairing requests are kept per channel.
A pending request expires after an hour; at most three may be pending
per channel at once.
"""

from __future__ import annotations

import asyncio
import json
import secrets
import time
from pathlib import Path
from typing import Any, Callable

import aiofiles
import structlog

from chatgate.core.domain.allowlist import normalize_entry
from chatgate.core.domain.errors import PairingError
from chatgate.core.interfaces.channel import PairingRequest

PAIRING_CODE_LENGTH = 8
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_PENDING_TTL_MS = 60 * 60 * 1000
PAIRING_PENDING_MAX = 3


def generate_pairing_code(existing: set[str] | None = None) -> str:
    """Random code from an alphabet without look-alike characters."""
    taken = existing or set()
    while True:
        code = "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(PAIRING_CODE_LENGTH))
        if code not in taken:
            return code


def _now_ms() -> int:
    return int(time.time() * 1000)


class _PairingState:
    """Pending requests plus approved ids for one channel.

    Shared by the file and in-memory stores; callers hold the channel
    lock while mutating it.
    """

    def __init__(self, requests: list[dict[str, Any]], allow_from: list[str]) -> None:
        self.requests = requests
        self.allow_from = allow_from

    def prune(self, now: int) -> bool:
        kept = [
            entry
            for entry in self.requests
            if now - int(entry.get("created_at", 0)) < PAIRING_PENDING_TTL_MS
        ]
        changed = len(kept) != len(self.requests)
        self.requests = kept
        return changed

    def upsert(
        self,
        channel: str,
        sender_id: str,
        meta: dict[str, Any] | None,
        now: int,
    ) -> PairingRequest:
        sender_key = normalize_entry(sender_id)
        for entry in self.requests:
            if entry.get("id") == sender_key:
                entry["last_seen_at"] = now
                if meta:
                    entry["meta"] = {**entry.get("meta", {}), **meta}
                return PairingRequest(code=entry["code"], created=False)

        if len(self.requests) >= PAIRING_PENDING_MAX:
            raise PairingError(
                "Too many pending pairing requests",
                channel=channel,
                details={"pending": len(self.requests), "sender_id": sender_id},
            )

        code = generate_pairing_code({entry["code"] for entry in self.requests})
        self.requests.append(
            {
                "id": sender_key,
                "code": code,
                "created_at": now,
                "last_seen_at": now,
                "meta": dict(meta or {}),
            }
        )
        return PairingRequest(code=code, created=True)

    def approve(self, code: str) -> str | None:
        wanted = code.strip().upper()
        for index, entry in enumerate(self.requests):
            if entry.get("code") == wanted:
                del self.requests[index]
                sender_key = entry["id"]
                if sender_key not in self.allow_from:
                    self.allow_from.append(sender_key)
                return sender_key
        return None


class FileAllowFromStore:
    """File-based allow-from store.

    Stores one JSON document per channel under
    ``{work_dir}/pairing/{channel}.json``::

        {"version": 1, "allow_from": [...], "requests": [...]}
    """

    def __init__(
        self,
        work_dir: str = ".chatgate",
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._base_dir = Path(work_dir) / "pairing"
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        self._clock = clock or _now_ms
        self._logger = structlog.get_logger()

    async def read_allow_from(self, channel: str) -> list[str]:
        async with self._get_lock(channel):
            state = await self._load(channel)
        return list(state.allow_from)

    async def upsert_pairing_request(
        self,
        channel: str,
        sender_id: str,
        meta: dict[str, Any] | None = None,
    ) -> PairingRequest:
        async with self._get_lock(channel):
            state = await self._load(channel)
            state.prune(self._clock())
            request = state.upsert(channel, sender_id, meta, self._clock())
            await self._save(channel, state)
        if request.created:
            self._logger.info("pairing_store.request_created", channel=channel, sender_id=sender_id)
        return request

    async def approve(self, channel: str, code: str) -> str | None:
        """Move the sender holding ``code`` onto the allow-list.

        Returns:
            The approved sender id, or None if no pending request matches.
        """
        async with self._get_lock(channel):
            state = await self._load(channel)
            state.prune(self._clock())
            sender_key = state.approve(code)
            await self._save(channel, state)
        if sender_key:
            self._logger.info("pairing_store.approved", channel=channel, sender_id=sender_key)
        return sender_key

    async def list_requests(self, channel: str) -> list[dict[str, Any]]:
        async with self._get_lock(channel):
            state = await self._load(channel)
            if state.prune(self._clock()):
                await self._save(channel, state)
        return [dict(entry) for entry in state.requests]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _channel_path(self, channel: str) -> Path:
        return self._base_dir / f"{channel.replace('/', '_')}.json"

    async def _load(self, channel: str) -> _PairingState:
        path = self._channel_path(channel)
        if not path.exists():
            return _PairingState([], [])
        async with aiofiles.open(path, encoding="utf-8") as handle:
            raw = await handle.read()
        try:
            payload = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            self._logger.error("pairing_store.corrupt_file", channel=channel, error=str(exc))
            payload = {}
        if not isinstance(payload, dict):
            self._logger.error(
                "pairing_store.corrupt_file", channel=channel, error="root is not an object"
            )
            payload = {}
        raw_requests = payload.get("requests")
        raw_allow_from = payload.get("allow_from")
        requests = [
            entry
            for entry in (raw_requests if isinstance(raw_requests, list) else [])
            if isinstance(entry, dict) and isinstance(entry.get("code"), str)
        ]
        allow_from = [
            normalize_entry(entry)
            for entry in (raw_allow_from if isinstance(raw_allow_from, list) else [])
            if isinstance(entry, (str, int))
        ]
        return _PairingState(requests, [entry for entry in allow_from if entry])

    async def _save(self, channel: str, state: _PairingState) -> None:
        path = self._channel_path(channel)
        temp_path = path.with_suffix(".json.tmp")
        payload = {"version": 1, "allow_from": state.allow_from, "requests": state.requests}
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as handle:
            await handle.write(json.dumps(payload, indent=2, ensure_ascii=False))
        temp_path.replace(path)


class InMemoryAllowFromStore:
    """In-memory allow-from store for tests."""

    def __init__(
        self,
        allow_from: dict[str, list[str]] | None = None,
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._states: dict[str, _PairingState] = {
            channel: _PairingState([], [normalize_entry(entry) for entry in entries])
            for channel, entries in (allow_from or {}).items()
        }
        self._lock = asyncio.Lock()
        self._clock = clock or _now_ms

    async def read_allow_from(self, channel: str) -> list[str]:
        return list(self._state(channel).allow_from)

    async def upsert_pairing_request(
        self,
        channel: str,
        sender_id: str,
        meta: dict[str, Any] | None = None,
    ) -> PairingRequest:
        async with self._lock:
            state = self._state(channel)
            state.prune(self._clock())
            return state.upsert(channel, sender_id, meta, self._clock())

    async def approve(self, channel: str, code: str) -> str | None:
        async with self._lock:
            return self._state(channel).approve(code)

    async def list_requests(self, channel: str) -> list[dict[str, Any]]:
        state = self._state(channel)
        state.prune(self._clock())
        return [dict(entry) for entry in state.requests]

    def _state(self, channel: str) -> _PairingState:
        if channel not in self._states:
            self._states[channel] = _PairingState([], [])
        return self._states[channel]
