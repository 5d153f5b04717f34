"""Delivery of agent reply blocks to the chat server."""

from __future__ import annotations

import time
from typing import Callable

from chatgate.core.domain.inbound import ReplyPayload
from chatgate.core.interfaces.channel import OutboundSenderProtocol, StatusSink


def format_reply_body(payload: ReplyPayload) -> str | None:
    """Render a reply block as text followed by ``Attachment: <url>`` lines.

    Returns:
        The message text, or None when the block has neither text nor media.
    """
    text = (payload.text or "").strip()
    media = list(payload.media_urls) or ([payload.media_url] if payload.media_url else [])
    if not text and not media:
        return None
    media_block = "\n".join(f"Attachment: {url}" for url in media)
    if not text:
        return media_block
    if not media_block:
        return text
    return f"{text}\n\n{media_block}"


class ReplyDeliverer:
    """Sends formatted reply blocks and reports ``last_outbound_at``."""

    def __init__(
        self,
        *,
        sender: OutboundSenderProtocol,
        status_sink: StatusSink | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._sender = sender
        self._status_sink = status_sink
        self._clock = clock or (lambda: int(time.time() * 1000))

    async def deliver(self, payload: ReplyPayload, *, chat_id: str, account_id: str) -> bool:
        """Send one block; returns False when the block was empty and skipped."""
        body = format_reply_body(payload)
        if body is None:
            return False
        await self._sender.send_message(
            to=chat_id,
            text=body,
            account_id=account_id,
            reply_to_id=payload.reply_to_id,
        )
        self.mark_outbound()
        return True

    def mark_outbound(self) -> None:
        if self._status_sink is not None:
            self._status_sink({"last_outbound_at": self._clock()})
