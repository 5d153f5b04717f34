"""Inbound admission pipeline.

Single entry point for every message arriving from the chat server.
Decides whether the message reaches an agent, routes it to an agent
session and hands the assembled context to the reply dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from chatgate.application.machine_registry import MachineProfileRegistry
from chatgate.application.pairing import PairingCoordinator
from chatgate.application.reply_delivery import ReplyDeliverer
from chatgate.core.domain.allowlist import (
    match_allowlist,
    merge_allowlists,
    normalize_allowlist,
    resolve_group_allow,
)
from chatgate.core.domain.config_schema import (
    CHANNEL_ID,
    CHANNEL_LABEL,
    AppConfig,
    ResolvedAccount,
)
from chatgate.core.domain.enums import ChatType, DmPolicy, DropReason, PeerKind
from chatgate.core.domain.gates import (
    CommandAuthorizer,
    CommandGateResult,
    resolve_control_command_gate,
    resolve_mention_gating_with_bypass,
)
from chatgate.core.domain.groups import (
    GroupMatch,
    resolve_group_match,
    resolve_group_system_prompt,
    resolve_require_mention,
)
from chatgate.core.domain.inbound import (
    GateDecision,
    InboundContext,
    InboundMessage,
    InboundOutcome,
    ReplyPayload,
    normalize_timestamp,
)
from chatgate.core.domain.mode import (
    ModeMetadata,
    apply_machine_routing_hints,
    build_mode_untrusted_context,
    resolve_identity_from_mode_id,
    resolve_mode_metadata,
    resolve_mode_route_account_id,
    resolve_mode_routing_map,
)
from chatgate.core.domain.personas import merge_system_prompts, resolve_identity_system_prompt
from chatgate.core.interfaces.channel import (
    AgentPeer,
    AgentRouteResolverProtocol,
    AllowFromStoreProtocol,
    CommandTextProtocol,
    EnvelopeProtocol,
    OutboundSenderProtocol,
    ReplyDispatcherProtocol,
    SessionStoreProtocol,
    StatusSink,
)
from chatgate.infrastructure.security.rate_limiter import (
    SenderRateLimiter,
    account_rate_key,
    sender_rate_key,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _AccessState:
    """Allow-lists and command gating computed once per message."""

    group_match: GroupMatch
    effective_allow_from: list[str]
    effective_group_allow_from: list[str]
    group_allow_from: list[str]
    allow_text_commands: bool
    has_control_command: bool
    command_gate: CommandGateResult


class InboundPipeline:
    """Admission and routing pipeline for one channel.

    Gates run in a fixed order and the first drop ends the run:

    1. Empty body.
    2. Rate limit (whole account, then sender).
    3. Group admission: not allow-listed or disabled (groups only).
    4. Unauthorized control command (groups only).
    5. Group sender policy, or DM policy with the pairing handshake.
    6. Mention gate (groups only).

    Admitted messages are routed, recorded into the session store and
    dispatched. Store, session and delivery failures are logged and never
    propagate out of ``handle``.

    Usage::

        pipeline = InboundPipeline(config=config, allow_from_store=store, ...)
        outcome = await pipeline.handle(message, resolve_account(config, "default"))
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        allow_from_store: AllowFromStoreProtocol,
        command_text: CommandTextProtocol,
        route_resolver: AgentRouteResolverProtocol,
        session_store: SessionStoreProtocol,
        envelope: EnvelopeProtocol,
        dispatcher: ReplyDispatcherProtocol,
        outbound_sender: OutboundSenderProtocol,
        sender_rate_limiter: SenderRateLimiter | None = None,
        account_rate_limiter: SenderRateLimiter | None = None,
        machine_registry: MachineProfileRegistry | None = None,
        status_sink: StatusSink | None = None,
    ) -> None:
        self._config = config
        self._allow_from_store = allow_from_store
        self._command_text = command_text
        self._route_resolver = route_resolver
        self._session_store = session_store
        self._envelope = envelope
        self._dispatcher = dispatcher
        self._sender_rate_limiter = sender_rate_limiter or SenderRateLimiter()
        self._account_rate_limiter = account_rate_limiter or SenderRateLimiter()
        self._machine_registry = machine_registry or MachineProfileRegistry()
        self._status_sink = status_sink
        self._deliverer = ReplyDeliverer(sender=outbound_sender, status_sink=status_sink)
        self._pairing = PairingCoordinator(
            store=allow_from_store,
            sender=outbound_sender,
            deliverer=self._deliverer,
        )

    @property
    def machine_registry(self) -> MachineProfileRegistry:
        return self._machine_registry

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        *,
        rate_limit_checked: bool = False,
    ) -> InboundOutcome:
        """Run one message through the pipeline.

        Args:
            message: The received message.
            account: The account the message arrived on.
            rate_limit_checked: Skip the rate-limit gate when the caller has
                already applied it.

        Returns:
            InboundOutcome with the drop reason, or the dispatched context.
        """
        raw_body = (message.text or "").strip()
        if not raw_body:
            return self._drop(message, account, GateDecision.drop(DropReason.EMPTY_BODY))

        timestamp = normalize_timestamp(message.timestamp)
        profile = self._machine_registry.get(account.account_id)
        routing = profile.routing if profile else None
        mode = apply_machine_routing_hints(resolve_mode_metadata(message), routing)
        mode_map = resolve_mode_routing_map(account.config.mode_account_map, routing)

        self._emit_status({"last_inbound_at": timestamp})

        if not rate_limit_checked:
            decision = self._check_rate_limit(message, account)
            if not decision.admitted:
                return self._drop(message, account, decision)

        access = await self._resolve_access(message, account, raw_body)

        decision = self._check_group_admission(message, access)
        if not decision.admitted:
            return self._drop(message, account, decision)

        decision = self._check_command_block(message, access)
        if not decision.admitted:
            return self._drop(message, account, decision)

        if message.is_group:
            decision = self._check_group_policy(message, account, access)
            if not decision.admitted:
                return self._drop(message, account, decision)
        else:
            decision, pairing_code = await self._check_dm_policy(message, account, access)
            if not decision.admitted:
                return self._drop(message, account, decision, pairing_code=pairing_code)

        decision = self._check_mention(message, access)
        if not decision.admitted:
            return self._drop(message, account, decision)

        ctx = await self._build_context(
            message,
            account,
            raw_body=raw_body,
            timestamp=timestamp,
            mode=mode,
            mode_map=mode_map,
            access=access,
        )
        await self._dispatch(message, account, ctx)
        return InboundOutcome(admitted=True, context=ctx)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _check_rate_limit(self, message: InboundMessage, account: ResolvedAccount) -> GateDecision:
        security = account.config.security
        if not self._account_rate_limiter.allow(
            account_rate_key(CHANNEL_ID, account.account_id),
            security.rate_limit_per_minute,
        ):
            return GateDecision.drop(DropReason.RATE_LIMITED, "account")
        if not self._sender_rate_limiter.allow(
            sender_rate_key(CHANNEL_ID, account.account_id, message.sender_id),
            security.rate_limit_per_minute_per_sender,
        ):
            return GateDecision.drop(DropReason.RATE_LIMITED, "sender")
        return GateDecision.admit()

    def _check_group_admission(
        self, message: InboundMessage, access: _AccessState
    ) -> GateDecision:
        if not message.is_group:
            return GateDecision.admit()
        match = access.group_match
        if not match.allowed:
            return GateDecision.drop(DropReason.GROUP_NOT_ALLOWLISTED)
        if match.group_config is not None and match.group_config.enabled is False:
            return GateDecision.drop(DropReason.GROUP_DISABLED)
        return GateDecision.admit()

    def _check_command_block(self, message: InboundMessage, access: _AccessState) -> GateDecision:
        if message.is_group and access.command_gate.should_block:
            return GateDecision.drop(DropReason.UNAUTHORIZED_COMMAND)
        return GateDecision.admit()

    def _check_group_policy(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        access: _AccessState,
    ) -> GateDecision:
        group_policy = account.group_policy(self._config.channels.defaults.group_policy)
        allowed = resolve_group_allow(
            group_policy=group_policy,
            outer_allow_from=access.effective_group_allow_from,
            inner_allow_from=access.group_allow_from,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
        )
        if not allowed:
            return GateDecision.drop(DropReason.GROUP_POLICY, f"policy={group_policy.value}")
        return GateDecision.admit()

    async def _check_dm_policy(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        access: _AccessState,
    ) -> tuple[GateDecision, str | None]:
        dm_policy = account.dm_policy
        if dm_policy == DmPolicy.DISABLED:
            return GateDecision.drop(DropReason.DM_DISABLED), None
        if dm_policy == DmPolicy.OPEN:
            return GateDecision.admit(), None

        allow_from = access.effective_allow_from
        # match_allowlist admits everyone on an empty list; here an empty list
        # admits no one, so unknown senders still go through pairing.
        matched = match_allowlist(allow_from, message.sender_id, message.sender_name)
        if allow_from and matched.allowed:
            return GateDecision.admit(), None

        if dm_policy != DmPolicy.PAIRING:
            return GateDecision.drop(DropReason.DM_NOT_ALLOWED, f"policy={dm_policy.value}"), None

        request = await self._pairing.request_pairing(
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            chat_id=message.chat_id,
            account_id=account.account_id,
        )
        pairing_code = request.code if request is not None and request.created else None
        return GateDecision.drop(DropReason.PAIRING_REQUIRED), pairing_code

    def _check_mention(self, message: InboundMessage, access: _AccessState) -> GateDecision:
        if not message.is_group:
            return GateDecision.admit()
        gate = resolve_mention_gating_with_bypass(
            is_group=True,
            require_mention=resolve_require_mention(access.group_match),
            was_mentioned=bool(message.mentioned),
            allow_text_commands=access.allow_text_commands,
            has_control_command=access.has_control_command,
            command_authorized=access.command_gate.command_authorized,
        )
        if gate.should_skip:
            return GateDecision.drop(DropReason.NO_MENTION)
        return GateDecision.admit()

    # ------------------------------------------------------------------
    # Access state
    # ------------------------------------------------------------------

    async def _resolve_access(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        raw_body: str,
    ) -> _AccessState:
        config_allow_from = normalize_allowlist(account.config.allow_from)
        config_group_allow_from = normalize_allowlist(account.config.group_allow_from)
        store_allow_from = normalize_allowlist(await self._read_store_allow_from())

        group_match = resolve_group_match(
            account.config.groups,
            message.chat_id,
            message.chat_name,
        )
        group_allow_from = normalize_allowlist(
            group_match.group_config.allow_from if group_match.group_config else None
        )
        base_group_allow_from = config_group_allow_from or config_allow_from

        effective_allow_from = merge_allowlists(config_allow_from, store_allow_from)
        effective_group_allow_from = merge_allowlists(base_group_allow_from, store_allow_from)

        allow_text_commands = self._command_text.should_handle_text_commands(CHANNEL_ID)
        has_control_command = self._command_text.has_control_command(raw_body)

        scope = effective_group_allow_from if message.is_group else effective_allow_from
        command_gate = resolve_control_command_gate(
            use_access_groups=self._config.commands.use_access_groups,
            authorizers=[
                CommandAuthorizer(
                    configured=len(scope) > 0,
                    allowed=match_allowlist(scope, message.sender_id, message.sender_name).allowed,
                )
            ],
            allow_text_commands=allow_text_commands,
            has_control_command=has_control_command,
        )

        return _AccessState(
            group_match=group_match,
            effective_allow_from=effective_allow_from,
            effective_group_allow_from=effective_group_allow_from,
            group_allow_from=group_allow_from,
            allow_text_commands=allow_text_commands,
            has_control_command=has_control_command,
            command_gate=command_gate,
        )

    async def _read_store_allow_from(self) -> list[str]:
        try:
            return await self._allow_from_store.read_allow_from(CHANNEL_ID)
        except Exception as exc:
            logger.warning("pairing_store.read_failed", channel=CHANNEL_ID, error=str(exc))
            return []

    # ------------------------------------------------------------------
    # Context assembly and dispatch
    # ------------------------------------------------------------------

    async def _build_context(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        *,
        raw_body: str,
        timestamp: int,
        mode: ModeMetadata,
        mode_map: Mapping[str, str] | None,
        access: _AccessState,
    ) -> InboundContext:
        is_group = message.is_group
        route = self._route_resolver.resolve_agent_route(
            channel=CHANNEL_ID,
            account_id=resolve_mode_route_account_id(account.account_id, mode, mode_map),
            peer=AgentPeer(kind=PeerKind.GROUP if is_group else PeerKind.DM, id=message.chat_id),
        )

        if is_group:
            from_label = f"group:{message.chat_name or message.chat_id}"
        else:
            from_label = message.sender_name or f"user:{message.sender_id}"

        store_path = self._session_store.resolve_store_path(route.agent_id)
        previous_timestamp = await self._read_previous_timestamp(store_path, route.session_key)
        body = self._envelope.format_agent_envelope(
            channel=CHANNEL_LABEL,
            from_label=from_label,
            timestamp=timestamp,
            previous_timestamp=previous_timestamp,
            body=raw_body,
        )

        system_prompt = merge_system_prompts(
            resolve_group_system_prompt(access.group_match),
            resolve_identity_system_prompt(resolve_identity_from_mode_id(mode.mode_id)),
        )
        untrusted_context = build_mode_untrusted_context(mode)

        ctx = self._envelope.finalize_inbound_context(
            InboundContext(
                body=body,
                raw_body=raw_body,
                command_body=raw_body,
                from_address=(
                    f"{CHANNEL_ID}:group:{message.chat_id}"
                    if is_group
                    else f"{CHANNEL_ID}:{message.sender_id}"
                ),
                to_address=f"{CHANNEL_ID}:{message.chat_id}",
                session_key=route.session_key,
                account_id=route.account_id,
                chat_type=ChatType.GROUP if is_group else ChatType.DIRECT,
                conversation_label=from_label,
                sender_id=message.sender_id,
                provider=CHANNEL_ID,
                surface=CHANNEL_ID,
                originating_channel=CHANNEL_ID,
                originating_to=f"{CHANNEL_ID}:{message.chat_id}",
                timestamp=timestamp,
                command_authorized=access.command_gate.command_authorized,
                sender_name=message.sender_name or None,
                group_subject=(message.chat_name or message.chat_id) if is_group else None,
                group_system_prompt=system_prompt,
                untrusted_context=tuple(untrusted_context) if untrusted_context else None,
                mode_id=mode.mode_id,
                mode_label=mode.mode_label,
                model_hint=mode.model_hint,
                agent_hint=mode.agent_hint,
                skills_hint=mode.skills_hint,
                was_mentioned=bool(message.mentioned) if is_group else None,
                message_sid=message.id,
                reply_to_id=message.id,
            )
        )

        await self._record_session(store_path, ctx)
        return ctx

    async def _read_previous_timestamp(self, store_path: str, session_key: str) -> int | None:
        try:
            return await self._session_store.read_session_updated_at(store_path, session_key)
        except Exception as exc:
            logger.warning(
                "inbound.session_read_failed",
                store_path=store_path,
                session_key=session_key,
                error=str(exc),
            )
            return None

    async def _record_session(self, store_path: str, ctx: InboundContext) -> None:
        def on_error(exc: BaseException) -> None:
            logger.error(
                "inbound.session_record_failed",
                session_key=ctx.session_key,
                error=str(exc),
            )

        try:
            await self._session_store.record_inbound_session(
                store_path=store_path,
                session_key=ctx.session_key,
                ctx=ctx,
                on_error=on_error,
            )
        except Exception as exc:
            on_error(exc)

    async def _dispatch(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        ctx: InboundContext,
    ) -> None:
        # Replies go out on the account the message arrived on, even when
        # the mode override routed the session to another account.
        async def deliver(payload: ReplyPayload) -> None:
            await self._deliverer.deliver(
                payload,
                chat_id=message.chat_id,
                account_id=account.account_id,
            )

        def on_error(exc: BaseException, kind: str) -> None:
            logger.error(
                "inbound.reply_failed",
                kind=kind,
                account_id=account.account_id,
                chat_id=message.chat_id,
                error=str(exc),
            )

        try:
            await self._dispatcher.dispatch(ctx=ctx, deliver=deliver, on_error=on_error)
        except Exception as exc:
            on_error(exc, "dispatch")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _drop(
        self,
        message: InboundMessage,
        account: ResolvedAccount,
        decision: GateDecision,
        *,
        pairing_code: str | None = None,
    ) -> InboundOutcome:
        logger.info(
            "inbound.drop",
            channel=CHANNEL_ID,
            account_id=account.account_id,
            sender_id=message.sender_id,
            chat_id=message.chat_id,
            reason=decision.reason.value if decision.reason else None,
            detail=decision.detail,
        )
        return InboundOutcome.dropped(decision.reason, pairing_code=pairing_code)

    def _emit_status(self, patch: dict[str, Any]) -> None:
        if self._status_sink is not None:
            self._status_sink(patch)
