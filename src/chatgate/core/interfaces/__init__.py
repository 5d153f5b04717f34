"""
Core Protocol Interfaces

Contracts for the collaborators of the inbound pipeline. The pipeline
depends on these protocols only, never on concrete stores or transports.
"""

from chatgate.core.interfaces.channel import (
    AgentPeer,
    AgentRoute,
    AgentRouteResolverProtocol,
    AllowFromStoreProtocol,
    CommandTextProtocol,
    EnvelopeProtocol,
    OutboundDeliveryResult,
    OutboundSenderProtocol,
    PairingRequest,
    ReplyDispatcherProtocol,
    SessionStoreProtocol,
)

__all__ = [
    "AgentPeer",
    "AgentRoute",
    "AgentRouteResolverProtocol",
    "AllowFromStoreProtocol",
    "CommandTextProtocol",
    "EnvelopeProtocol",
    "OutboundDeliveryResult",
    "OutboundSenderProtocol",
    "PairingRequest",
    "ReplyDispatcherProtocol",
    "SessionStoreProtocol",
]
