"""Tests for EnvelopeFormatter."""

from chatgate.core.domain.config_schema import EnvelopeConfig
from chatgate.core.domain.enums import ChatType
from chatgate.core.domain.inbound import InboundContext
from chatgate.infrastructure.communication.envelope import EnvelopeFormatter, format_elapsed

# 2026-01-01 00:00:00 UTC
NEW_YEAR_MS = 1_767_225_600_000


def test_format_elapsed_units() -> None:
    assert format_elapsed(5_000) == "5s"
    assert format_elapsed(5 * 60_000) == "5m"
    assert format_elapsed(3 * 3_600_000) == "3h"
    assert format_elapsed(2 * 86_400_000) == "2d"


def test_envelope_with_elapsed_and_timestamp() -> None:
    formatter = EnvelopeFormatter()
    body = formatter.format_agent_envelope(
        channel="Vimalinx",
        from_label="Alice",
        timestamp=NEW_YEAR_MS,
        previous_timestamp=NEW_YEAR_MS - 120_000,
        body="hello",
    )
    assert body == "[Vimalinx Alice +2m 2026-01-01 00:00 UTC] hello"


def test_envelope_without_previous_message() -> None:
    formatter = EnvelopeFormatter(EnvelopeConfig(include_timestamp=False))
    body = formatter.format_agent_envelope(
        channel="Vimalinx",
        from_label="user:u-1",
        timestamp=NEW_YEAR_MS,
        previous_timestamp=None,
        body="hi",
    )
    assert body == "[Vimalinx user:u-1] hi"


def test_replayed_timestamp_adds_no_elapsed() -> None:
    formatter = EnvelopeFormatter(EnvelopeConfig(include_timestamp=False))
    body = formatter.format_agent_envelope(
        channel="Vimalinx",
        from_label="Alice",
        timestamp=NEW_YEAR_MS,
        previous_timestamp=NEW_YEAR_MS,
        body="hi",
    )
    assert body == "[Vimalinx Alice] hi"


def test_iana_timezone() -> None:
    formatter = EnvelopeFormatter(EnvelopeConfig(timezone="Asia/Shanghai", include_elapsed=False))
    body = formatter.format_agent_envelope(
        channel="Vimalinx",
        from_label="Alice",
        timestamp=NEW_YEAR_MS,
        previous_timestamp=None,
        body="hi",
    )
    assert body == "[Vimalinx Alice 2026-01-01 08:00 CST] hi"


def test_finalize_normalizes_line_endings() -> None:
    ctx = InboundContext(
        body="a\r\nb",
        raw_body="a\r\nb",
        command_body=" /status\r\n",
        from_address="vimalinx:u",
        to_address="vimalinx:c",
        session_key="s",
        account_id="default",
        chat_type=ChatType.DIRECT,
        conversation_label="u",
        sender_id="u",
        provider="vimalinx",
        surface="vimalinx",
        originating_channel="vimalinx",
        originating_to="vimalinx:c",
        timestamp=NEW_YEAR_MS,
        command_authorized=True,
    )
    finalized = EnvelopeFormatter().finalize_inbound_context(ctx)
    assert finalized.body == "a\nb"
    assert finalized.raw_body == "a\nb"
    assert finalized.command_body == "/status"
