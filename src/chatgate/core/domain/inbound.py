"""Domain models for the inbound admission pipeline.

All structured types that flow through the pipeline: the received
message, gate decisions, the assembled agent context and the outcome of
a single pipeline run.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any

from chatgate.core.domain.enums import ChatType, DropReason
from chatgate.core.domain.errors import ValidationError

# Values at or below this are neither plausible epoch seconds nor milliseconds.
_MIN_EPOCH_SECONDS = 1_000_000_000
_MIN_EPOCH_MILLIS = 1_000_000_000_000
# 9999-12-30T23:59:59.999Z: one day short of the datetime limit so any
# UTC offset still converts.
_MAX_EPOCH_MILLIS = 253_402_214_399_999


@dataclass(frozen=True)
class InboundMessage:
    """Message received from the external chat surface.

    Attributes:
        sender_id: Channel-specific sender identifier.
        chat_id: Channel-specific chat identifier (DM peer or group).
        text: Raw message text.
        chat_type: Direct or group chat.
        id: Message id, reused as the reply-target id.
        sender_name: Optional sender display name.
        chat_name: Optional chat display name.
        mentioned: Whether the message explicitly mentions the bot.
        timestamp: Epoch seconds or milliseconds, unvalidated.
        mode_id: Client-declared mode token.
        mode_label: Client-declared mode display label.
        model_hint: Client-declared model preference.
        agent_hint: Client-declared agent preference.
        skills_hint: Client-declared skills preference.
    """

    sender_id: str
    chat_id: str
    text: str
    chat_type: ChatType = ChatType.DIRECT
    id: str | None = None
    sender_name: str | None = None
    chat_name: str | None = None
    mentioned: bool | None = None
    timestamp: float | None = None
    mode_id: str | None = None
    mode_label: str | None = None
    model_hint: str | None = None
    agent_hint: str | None = None
    skills_hint: str | None = None

    @property
    def is_group(self) -> bool:
        return self.chat_type == ChatType.GROUP

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InboundMessage":
        """Build a message from the JSON shape posted by the chat server.

        The message may be wrapped in a ``message`` object. Unknown chat
        types are treated as direct messages.

        Raises:
            ValidationError: If ``chatId`` or ``senderId`` is missing.
        """
        source = payload.get("message") if isinstance(payload.get("message"), dict) else payload
        chat_id = _opt_str(source.get("chatId"))
        sender_id = _opt_str(source.get("senderId"))
        if not chat_id or not sender_id:
            raise ValidationError(
                "Missing chatId or senderId",
                details={"chat_id": chat_id, "sender_id": sender_id},
            )
        text = source.get("text")
        timestamp = source.get("timestamp")
        mentioned = source.get("mentioned")
        return cls(
            sender_id=sender_id,
            chat_id=chat_id,
            text=text if isinstance(text, str) else "",
            chat_type=ChatType.GROUP if source.get("chatType") == "group" else ChatType.DIRECT,
            id=_opt_str(source.get("id")),
            sender_name=_opt_str(source.get("senderName")),
            chat_name=_opt_str(source.get("chatName")),
            mentioned=mentioned if isinstance(mentioned, bool) else None,
            timestamp=(
                timestamp
                if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool)
                else None
            ),
            mode_id=_opt_str(source.get("modeId")),
            mode_label=_opt_str(source.get("modeLabel")),
            model_hint=_opt_str(source.get("modelHint")),
            agent_hint=_opt_str(source.get("agentHint")),
            skills_hint=_opt_str(source.get("skillsHint")),
        )


def _opt_str(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_timestamp(value: float | None) -> int:
    """Return the timestamp as epoch milliseconds.

    Values above 10^12 are taken as milliseconds, values above 10^9 as
    seconds. Anything else (missing, non-finite, too small, or past the
    year 9999) is replaced with the current time.
    """
    if not value or not math.isfinite(value):
        return now_ms()
    if value > _MIN_EPOCH_MILLIS:
        millis = int(value)
    elif value > _MIN_EPOCH_SECONDS:
        millis = int(value * 1000)
    else:
        return now_ms()
    if millis > _MAX_EPOCH_MILLIS:
        return now_ms()
    return millis


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a single admission gate.

    Attributes:
        admitted: Whether the message may continue down the pipeline.
        reason: Why the message was dropped (``None`` when admitted).
        detail: Short free-form context for the drop log line.
    """

    admitted: bool
    reason: DropReason | None = None
    detail: str | None = None

    @classmethod
    def admit(cls) -> "GateDecision":
        return cls(admitted=True)

    @classmethod
    def drop(cls, reason: DropReason, detail: str | None = None) -> "GateDecision":
        return cls(admitted=False, reason=reason, detail=detail)


@dataclass(frozen=True)
class InboundContext:
    """Agent context assembled for an admitted message.

    Handed to the reply dispatcher and recorded into the session store.
    """

    body: str
    raw_body: str
    command_body: str
    from_address: str
    to_address: str
    session_key: str
    account_id: str
    chat_type: ChatType
    conversation_label: str
    sender_id: str
    provider: str
    surface: str
    originating_channel: str
    originating_to: str
    timestamp: int
    command_authorized: bool
    sender_name: str | None = None
    group_subject: str | None = None
    group_system_prompt: str | None = None
    untrusted_context: tuple[str, ...] | None = None
    mode_id: str | None = None
    mode_label: str | None = None
    model_hint: str | None = None
    agent_hint: str | None = None
    skills_hint: str | None = None
    was_mentioned: bool | None = None
    message_sid: str | None = None
    reply_to_id: str | None = None


@dataclass(frozen=True)
class InboundOutcome:
    """Result of running one message through the pipeline.

    Attributes:
        admitted: True when the message reached the dispatch boundary.
        reason: Drop reason for rejected messages.
        context: The assembled context for admitted messages.
        pairing_code: Code issued to an unpaired DM sender, if any.
    """

    admitted: bool
    reason: DropReason | None = None
    context: InboundContext | None = None
    pairing_code: str | None = None

    @classmethod
    def dropped(
        cls, reason: DropReason | None, *, pairing_code: str | None = None
    ) -> "InboundOutcome":
        return cls(admitted=False, reason=reason, pairing_code=pairing_code)


@dataclass(frozen=True)
class ReplyPayload:
    """One reply block produced by the agent dispatcher.

    Attributes:
        text: Reply text.
        media_urls: Attachment URLs.
        media_url: Single attachment URL (used when ``media_urls`` is empty).
        reply_to_id: Message id the reply threads under.
    """

    text: str | None = None
    media_urls: list[str] = field(default_factory=list)
    media_url: str | None = None
    reply_to_id: str | None = None
