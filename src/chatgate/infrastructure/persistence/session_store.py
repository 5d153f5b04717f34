"""Session metadata stores implementing SessionStoreProtocol.

Each agent has one JSON document mapping session keys to entries::

    {"agent:main:vimalinx:dm:alice": {"updated_at": 1767225600000,
                                      "chat_type": "direct", ...}}
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable

import aiofiles
import structlog

from chatgate.core.domain.inbound import InboundContext

DEFAULT_STORE_TEMPLATE = "~/.chatgate/agents/{agentId}/sessions.json"


def session_entry(ctx: InboundContext, previous: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merge an admitted message into its session entry.

    ``updated_at`` only moves forward, so replaying a recorded message
    leaves the entry unchanged.
    """
    entry = dict(previous or {})
    entry.update(
        {
            "updated_at": max(int(entry.get("updated_at") or 0), ctx.timestamp),
            "chat_type": ctx.chat_type.value,
            "channel": ctx.originating_channel,
            "account_id": ctx.account_id,
            "last_to": ctx.originating_to,
            "display_label": ctx.conversation_label,
            "sender_id": ctx.sender_id,
        }
    )
    if ctx.group_subject:
        entry["group_subject"] = ctx.group_subject
    return entry


class FileSessionStore:
    """File-based session store, one JSON document per agent."""

    def __init__(self, store_template: str | None = None) -> None:
        self._template = store_template or DEFAULT_STORE_TEMPLATE
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = structlog.get_logger()

    def resolve_store_path(self, agent_id: str) -> str:
        path = self._template.replace("{agentId}", agent_id)
        return str(Path(path).expanduser())

    async def read_session_updated_at(self, store_path: str, session_key: str) -> int | None:
        async with self._get_lock(store_path):
            sessions = await self._load(Path(store_path))
        entry = sessions.get(session_key)
        if not isinstance(entry, dict):
            return None
        updated_at = entry.get("updated_at")
        return int(updated_at) if isinstance(updated_at, (int, float)) else None

    async def record_inbound_session(
        self,
        *,
        store_path: str,
        session_key: str,
        ctx: InboundContext,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        path = Path(store_path)
        temp_path = path.with_suffix(".json.tmp")
        async with self._get_lock(store_path):
            try:
                sessions = await self._load(path)
                previous = sessions.get(session_key)
                sessions[session_key] = session_entry(
                    ctx, previous if isinstance(previous, dict) else None
                )
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(temp_path, "w", encoding="utf-8") as handle:
                    await handle.write(json.dumps(sessions, indent=2, ensure_ascii=False))
                temp_path.replace(path)
            except (OSError, ValueError) as exc:
                if on_error is not None:
                    on_error(exc)
                else:
                    self._logger.error(
                        "session_store.record_failed",
                        store_path=store_path,
                        session_key=session_key,
                        error=str(exc),
                    )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _load(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        async with aiofiles.open(path, encoding="utf-8") as handle:
            raw = await handle.read()
        data = json.loads(raw) if raw.strip() else {}
        return data if isinstance(data, dict) else {}


class InMemorySessionStore:
    """In-memory session store for tests."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, dict[str, Any]]] = {}
        self.recorded: list[InboundContext] = []

    def resolve_store_path(self, agent_id: str) -> str:
        return f"memory://{agent_id}"

    async def read_session_updated_at(self, store_path: str, session_key: str) -> int | None:
        entry = self.sessions.get(store_path, {}).get(session_key)
        return entry.get("updated_at") if entry else None

    async def record_inbound_session(
        self,
        *,
        store_path: str,
        session_key: str,
        ctx: InboundContext,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        store = self.sessions.setdefault(store_path, {})
        store[session_key] = session_entry(ctx, store.get(session_key))
        self.recorded.append(ctx)
