"""Protocol definitions for the channel collaborators of the inbound pipeline.

The pipeline owns admission and context assembly only. Everything that
touches storage, routing tables, rendering or the network sits behind
one of these protocols:

- AllowFromStoreProtocol: store-backed allow-list plus pairing requests
- CommandTextProtocol: control-command detection
- AgentRouteResolverProtocol: agent/session routing
- SessionStoreProtocol: session metadata persistence
- EnvelopeProtocol: display envelope and context finalization
- ReplyDispatcherProtocol: agent response generation (buffered blocks)
- OutboundSenderProtocol: delivering replies to the chat server
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from chatgate.core.domain.enums import PeerKind
from chatgate.core.domain.inbound import InboundContext, ReplyPayload


@dataclass(frozen=True)
class PairingRequest:
    """Result of upserting a pairing request.

    Attributes:
        code: The pairing code the sender should present for approval.
        created: True only for the call that created the pending request.
    """

    code: str
    created: bool


@dataclass(frozen=True)
class AgentPeer:
    kind: PeerKind
    id: str


@dataclass(frozen=True)
class AgentRoute:
    """Agent and session a message is routed to.

    Attributes:
        agent_id: Target agent.
        account_id: Channel account the route was resolved under.
        session_key: Key binding the conversation to agent state.
    """

    agent_id: str
    account_id: str
    session_key: str


@dataclass(frozen=True)
class OutboundDeliveryResult:
    channel: str
    message_id: str
    chat_id: str


StatusSink = Callable[[dict[str, Any]], None]
"""Receives status patches such as ``{"last_inbound_at": <ms>}``."""

DeliverCallback = Callable[[ReplyPayload], Awaitable[None]]
ErrorCallback = Callable[[BaseException, str], None]


class AllowFromStoreProtocol(Protocol):
    """Persistent allow-list entries and pending pairing requests per channel."""

    async def read_allow_from(self, channel: str) -> list[str]:
        """Return the approved sender ids for ``channel``.

        Raises:
            OSError: If the backing store cannot be read.
        """
        ...

    async def upsert_pairing_request(
        self,
        channel: str,
        sender_id: str,
        meta: dict[str, Any] | None = None,
    ) -> PairingRequest:
        """Create a pending request or return the existing one.

        Repeated calls for the same sender return the same code with
        ``created=False`` until the request expires or is approved.
        """
        ...


class CommandTextProtocol(Protocol):
    def should_handle_text_commands(self, surface: str) -> bool:
        """Whether text commands are enabled on ``surface``."""
        ...

    def has_control_command(self, text: str) -> bool:
        """Whether ``text`` is a recognized control command."""
        ...


class AgentRouteResolverProtocol(Protocol):
    def resolve_agent_route(
        self,
        *,
        channel: str,
        account_id: str,
        peer: AgentPeer,
    ) -> AgentRoute:
        ...


class SessionStoreProtocol(Protocol):
    """Session metadata persistence."""

    def resolve_store_path(self, agent_id: str) -> str:
        ...

    async def read_session_updated_at(self, store_path: str, session_key: str) -> int | None:
        """Return the last update time (epoch ms) of a session, or None."""
        ...

    async def record_inbound_session(
        self,
        *,
        store_path: str,
        session_key: str,
        ctx: InboundContext,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        """Record the admitted message against its session.

        Failures are reported to ``on_error`` instead of raised.
        """
        ...


class EnvelopeProtocol(Protocol):
    def format_agent_envelope(
        self,
        *,
        channel: str,
        from_label: str,
        timestamp: int,
        previous_timestamp: int | None,
        body: str,
    ) -> str:
        """Render the display body shown to the agent."""
        ...

    def finalize_inbound_context(self, ctx: InboundContext) -> InboundContext:
        ...


class ReplyDispatcherProtocol(Protocol):
    """Generates the agent reply and delivers it block by block."""

    async def dispatch(
        self,
        *,
        ctx: InboundContext,
        deliver: DeliverCallback,
        on_error: ErrorCallback,
    ) -> None:
        ...


class OutboundSenderProtocol(Protocol):
    async def send_message(
        self,
        *,
        to: str,
        text: str,
        account_id: str,
        reply_to_id: str | None = None,
    ) -> OutboundDeliveryResult:
        """Deliver ``text`` to chat ``to``.

        Raises:
            ConfigError: If the account has no usable base URL.
            TransportError: If the chat server answers with a non-2xx status.
        """
        ...
