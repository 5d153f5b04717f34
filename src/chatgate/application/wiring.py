"""Builds a ready-to-use inbound pipeline from configuration.

Creates and wires the default collaborators (file stores, command
detector, agent router, envelope formatter, HTTP sender). The reply
dispatcher has no default and must be supplied by the host.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from chatgate.application.inbound_pipeline import InboundPipeline
from chatgate.application.machine_registry import MachineProfileRegistry
from chatgate.core.domain.config_schema import AppConfig, ResolvedAccount, resolve_account
from chatgate.core.domain.inbound import InboundMessage, InboundOutcome
from chatgate.core.interfaces.channel import (
    AllowFromStoreProtocol,
    OutboundSenderProtocol,
    ReplyDispatcherProtocol,
    SessionStoreProtocol,
    StatusSink,
)
from chatgate.infrastructure.communication.agent_router import BindingAgentRouter
from chatgate.infrastructure.communication.envelope import EnvelopeFormatter
from chatgate.infrastructure.communication.outbound_sender import HttpOutboundSender
from chatgate.infrastructure.communication.text_commands import TextCommandDetector
from chatgate.infrastructure.persistence.allow_from_store import FileAllowFromStore
from chatgate.infrastructure.persistence.session_store import FileSessionStore


@dataclass
class ChannelRuntime:
    """A pipeline bound to one resolved account.

    Attributes:
        account: The account inbound messages are handled under.
        pipeline: The wired admission pipeline.
        outbound_sender: Sender used for replies and pairing messages.
        allow_from_store: Store consulted for paired senders.
        session_store: Session metadata store.
        machine_registry: Registry of machine profiles for mode routing.
    """

    account: ResolvedAccount
    pipeline: InboundPipeline
    outbound_sender: OutboundSenderProtocol
    allow_from_store: AllowFromStoreProtocol
    session_store: SessionStoreProtocol
    machine_registry: MachineProfileRegistry

    async def handle(
        self,
        message: InboundMessage,
        *,
        rate_limit_checked: bool = False,
    ) -> InboundOutcome:
        return await self.pipeline.handle(
            message,
            self.account,
            rate_limit_checked=rate_limit_checked,
        )

    async def close(self) -> None:
        close = getattr(self.outbound_sender, "close", None)
        if close is not None:
            await close()


def build_pipeline(
    config: AppConfig,
    account_id: str | None = None,
    *,
    dispatcher: ReplyDispatcherProtocol,
    work_dir: str = ".chatgate",
    outbound_sender: OutboundSenderProtocol | None = None,
    allow_from_store: AllowFromStoreProtocol | None = None,
    session_store: SessionStoreProtocol | None = None,
    machine_registry: MachineProfileRegistry | None = None,
    status_sink: StatusSink | None = None,
) -> ChannelRuntime:
    """Wire a pipeline for ``account_id`` from configuration.

    Args:
        config: Validated application configuration.
        account_id: Account to bind; the channel default when omitted.
        dispatcher: Generates agent replies for admitted messages.
        work_dir: Base directory for the file-based pairing store.
        outbound_sender: Overrides the HTTP sender.
        allow_from_store: Overrides the file pairing store.
        session_store: Overrides the file session store.
        machine_registry: Shares a registry between several runtimes.
        status_sink: Receives ``last_inbound_at`` / ``last_outbound_at``.

    Returns:
        A ChannelRuntime ready to handle messages.
    """
    logger = structlog.get_logger()
    account = resolve_account(config, account_id)

    sender = outbound_sender or HttpOutboundSender(config)
    store = allow_from_store or FileAllowFromStore(work_dir=work_dir)
    sessions = session_store or FileSessionStore(config.session.store)
    registry = machine_registry or MachineProfileRegistry()

    pipeline = InboundPipeline(
        config=config,
        allow_from_store=store,
        command_text=TextCommandDetector.from_config(config.commands),
        route_resolver=BindingAgentRouter(config.agents),
        session_store=sessions,
        envelope=EnvelopeFormatter(config.envelope),
        dispatcher=dispatcher,
        outbound_sender=sender,
        machine_registry=registry,
        status_sink=status_sink,
    )
    logger.info(
        "pipeline.configured",
        account_id=account.account_id,
        enabled=account.enabled,
        dm_policy=account.dm_policy.value,
    )
    return ChannelRuntime(
        account=account,
        pipeline=pipeline,
        outbound_sender=sender,
        allow_from_store=store,
        session_store=sessions,
        machine_registry=registry,
    )
