"""Display envelope rendering for agent-facing message bodies.

An envelope prefixes the raw body with channel, sender, time since the
previous message in the session and the message time::

    [Vimalinx alice +5m 2026-03-01 14:02 UTC] hello
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from chatgate.core.domain.config_schema import EnvelopeConfig
from chatgate.core.domain.inbound import InboundContext

logger = structlog.get_logger(__name__)


def format_elapsed(elapsed_ms: int) -> str:
    seconds = max(0, elapsed_ms) // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def resolve_timezone(name: str) -> tzinfo | None:
    """``utc``, ``local`` or an IANA zone name; ``None`` means local time."""
    key = (name or "utc").strip()
    if key.lower() == "utc":
        return timezone.utc
    if key.lower() == "local":
        return None
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("envelope.unknown_timezone", timezone=key)
        return timezone.utc


class EnvelopeFormatter:
    def __init__(self, config: EnvelopeConfig | None = None) -> None:
        self._config = config or EnvelopeConfig()
        self._tz = resolve_timezone(self._config.timezone)

    def format_agent_envelope(
        self,
        *,
        channel: str,
        from_label: str,
        timestamp: int,
        previous_timestamp: int | None,
        body: str,
    ) -> str:
        parts = [channel]
        if from_label:
            parts.append(from_label)
        if (
            self._config.include_elapsed
            and previous_timestamp is not None
            and timestamp > previous_timestamp
        ):
            parts.append(f"+{format_elapsed(timestamp - previous_timestamp)}")
        if self._config.include_timestamp:
            parts.append(self._format_timestamp(timestamp))
        return f"[{' '.join(parts)}] {body}"

    def finalize_inbound_context(self, ctx: InboundContext) -> InboundContext:
        """Normalize line endings and trim the command body."""
        return replace(
            ctx,
            body=_normalize_newlines(ctx.body),
            raw_body=_normalize_newlines(ctx.raw_body),
            command_body=_normalize_newlines(ctx.command_body).strip(),
        )

    def _format_timestamp(self, timestamp: int) -> str:
        moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
        local = moment.astimezone(self._tz)
        return local.strftime("%Y-%m-%d %H:%M %Z").strip()


def _normalize_newlines(value: str) -> str:
    return value.replace("\r\n", "\n").replace("\r", "\n")
