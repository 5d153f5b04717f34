"""Tests for PairingCoordinator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from chatgate.application.pairing import PairingCoordinator, build_pairing_reply
from chatgate.application.reply_delivery import ReplyDeliverer
from chatgate.core.domain.errors import PairingError, TransportError
from chatgate.core.interfaces.channel import PairingRequest
from chatgate.infrastructure.persistence.allow_from_store import InMemoryAllowFromStore


def test_build_pairing_reply_layout() -> None:
    text = build_pairing_reply(channel="vimalinx", id_line="Your vimalinx user id: u-1", code="ABCD2345")
    assert text.splitlines() == [
        "Access not configured.",
        "",
        "Your vimalinx user id: u-1",
        "",
        "Pairing code: ABCD2345",
        "",
        "Ask the bot owner to approve this code for the vimalinx channel.",
    ]


@pytest.mark.asyncio
async def test_reply_sent_only_when_request_created() -> None:
    sender = AsyncMock()
    coordinator = PairingCoordinator(store=InMemoryAllowFromStore(), sender=sender)

    first = await coordinator.request_pairing(
        sender_id="u-1", sender_name="Alice", chat_id="c-1", account_id="default"
    )
    second = await coordinator.request_pairing(
        sender_id="u-1", sender_name="Alice", chat_id="c-1", account_id="default"
    )

    assert first.created is True
    assert second == PairingRequest(code=first.code, created=False)
    sender.send_message.assert_awaited_once()
    kwargs = sender.send_message.await_args.kwargs
    assert kwargs["to"] == "c-1"
    assert kwargs["account_id"] == "default"
    assert first.code in kwargs["text"]


@pytest.mark.asyncio
async def test_send_failure_is_swallowed_and_not_marked() -> None:
    sender = AsyncMock()
    sender.send_message.side_effect = TransportError("boom", status_code=502)
    status: list[dict] = []
    deliverer = ReplyDeliverer(sender=sender, status_sink=status.append)
    coordinator = PairingCoordinator(
        store=InMemoryAllowFromStore(), sender=sender, deliverer=deliverer
    )

    request = await coordinator.request_pairing(
        sender_id="u-1", sender_name=None, chat_id="c-1", account_id="default"
    )

    assert request.created is True
    assert status == []


@pytest.mark.asyncio
async def test_successful_reply_marks_outbound() -> None:
    sender = AsyncMock()
    status: list[dict] = []
    deliverer = ReplyDeliverer(sender=sender, status_sink=status.append, clock=lambda: 42)
    coordinator = PairingCoordinator(
        store=InMemoryAllowFromStore(), sender=sender, deliverer=deliverer
    )

    await coordinator.request_pairing(
        sender_id="u-1", sender_name=None, chat_id="c-1", account_id="default"
    )

    assert status == [{"last_outbound_at": 42}]


@pytest.mark.asyncio
async def test_store_refusal_returns_none() -> None:
    store = AsyncMock()
    store.upsert_pairing_request.side_effect = PairingError("full", channel="vimalinx")
    sender = AsyncMock()
    coordinator = PairingCoordinator(store=store, sender=sender)

    result = await coordinator.request_pairing(
        sender_id="u-4", sender_name=None, chat_id="c-4", account_id="default"
    )

    assert result is None
    sender.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_failure_returns_none() -> None:
    store = AsyncMock()
    store.upsert_pairing_request.side_effect = OSError("disk full")
    sender = AsyncMock()
    coordinator = PairingCoordinator(store=store, sender=sender)

    result = await coordinator.request_pairing(
        sender_id="u-5", sender_name=None, chat_id="c-5", account_id="default"
    )

    assert result is None
    sender.send_message.assert_not_awaited()
