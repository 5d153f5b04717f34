"""Pairing handshake for unknown direct-message senders."""

from __future__ import annotations

import structlog

from chatgate.application.reply_delivery import ReplyDeliverer
from chatgate.core.domain.config_schema import CHANNEL_ID
from chatgate.core.domain.errors import PairingError
from chatgate.core.interfaces.channel import (
    AllowFromStoreProtocol,
    OutboundSenderProtocol,
    PairingRequest,
)

logger = structlog.get_logger(__name__)


def build_pairing_reply(*, channel: str, id_line: str, code: str) -> str:
    return "\n".join(
        [
            "Access not configured.",
            "",
            id_line,
            "",
            f"Pairing code: {code}",
            "",
            f"Ask the bot owner to approve this code for the {channel} channel.",
        ]
    )


class PairingCoordinator:
    """Issues pairing codes and sends the one-time pairing reply.

    The store decides whether a request is new; only the call that
    creates a request sends a reply, so repeated messages from the same
    pending sender stay silent.
    """

    def __init__(
        self,
        *,
        store: AllowFromStoreProtocol,
        sender: OutboundSenderProtocol,
        deliverer: ReplyDeliverer | None = None,
        channel: str = CHANNEL_ID,
    ) -> None:
        self._store = store
        self._sender = sender
        self._deliverer = deliverer
        self._channel = channel

    async def request_pairing(
        self,
        *,
        sender_id: str,
        sender_name: str | None,
        chat_id: str,
        account_id: str,
    ) -> PairingRequest | None:
        """Upsert a pairing request and reply once if it was just created.

        Returns:
            The pairing request, or None when the store refused or failed.
        """
        meta = {"name": sender_name} if sender_name else None
        try:
            request = await self._store.upsert_pairing_request(self._channel, sender_id, meta)
        except PairingError as exc:
            logger.warning(
                "inbound.pairing_rejected",
                channel=self._channel,
                sender_id=sender_id,
                error=exc.message,
            )
            return None
        except Exception as exc:
            logger.error(
                "inbound.pairing_failed",
                channel=self._channel,
                sender_id=sender_id,
                error=str(exc),
            )
            return None

        if request.created:
            await self._send_reply(
                request,
                sender_id=sender_id,
                chat_id=chat_id,
                account_id=account_id,
            )
        return request

    async def _send_reply(
        self,
        request: PairingRequest,
        *,
        sender_id: str,
        chat_id: str,
        account_id: str,
    ) -> None:
        text = build_pairing_reply(
            channel=self._channel,
            id_line=f"Your {self._channel} user id: {sender_id}",
            code=request.code,
        )
        try:
            await self._sender.send_message(to=chat_id, text=text, account_id=account_id)
        except Exception as exc:
            logger.error(
                "inbound.pairing_reply_failed",
                channel=self._channel,
                sender_id=sender_id,
                error=str(exc),
            )
            return
        if self._deliverer is not None:
            self._deliverer.mark_outbound()
