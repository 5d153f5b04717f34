"""Binding-based agent route resolution."""

from __future__ import annotations

from chatgate.core.domain.config_schema import AgentsConfig, RouteBinding, normalize_account_id
from chatgate.core.domain.enums import PeerKind
from chatgate.core.interfaces.channel import AgentPeer, AgentRoute


def build_session_key(*, agent_id: str, channel: str, peer: AgentPeer) -> str:
    kind = "group" if peer.kind == PeerKind.GROUP else "dm"
    return f"agent:{agent_id}:{channel}:{kind}:{peer.id}".lower()


class BindingAgentRouter:
    """Resolve the agent for a peer from configured bindings.

    A binding naming the exact peer wins over one naming only the
    account; with no match the default agent handles the message.
    """

    def __init__(self, config: AgentsConfig | None = None) -> None:
        self._config = config or AgentsConfig()

    def resolve_agent_route(
        self,
        *,
        channel: str,
        account_id: str,
        peer: AgentPeer,
    ) -> AgentRoute:
        agent_id = self._select_agent(account_id, peer)
        return AgentRoute(
            agent_id=agent_id,
            account_id=account_id,
            session_key=build_session_key(agent_id=agent_id, channel=channel, peer=peer),
        )

    def _select_agent(self, account_id: str, peer: AgentPeer) -> str:
        candidates = [
            binding
            for binding in self._config.bindings
            if self._account_matches(binding, account_id)
        ]
        for binding in candidates:
            if binding.peer_id is not None and self._peer_matches(binding, peer):
                return binding.agent_id
        for binding in candidates:
            if binding.peer_id is None and (
                binding.peer_kind is None or binding.peer_kind == peer.kind
            ):
                return binding.agent_id
        return self._config.default

    @staticmethod
    def _account_matches(binding: RouteBinding, account_id: str) -> bool:
        if binding.account_id is None:
            return True
        if binding.account_id.strip() == "*":
            return True
        return normalize_account_id(binding.account_id) == normalize_account_id(account_id)

    @staticmethod
    def _peer_matches(binding: RouteBinding, peer: AgentPeer) -> bool:
        if binding.peer_kind is not None and binding.peer_kind != peer.kind:
            return False
        return (binding.peer_id or "").strip() == peer.id
