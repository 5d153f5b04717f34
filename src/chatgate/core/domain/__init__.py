"""
Domain Models and Business Logic

This package contains the core domain models for the inbound pipeline:
- Inbound message, context and outcome models
- Allow-list, group, command and mention gate decisions
- Client mode and persona resolution
- Configuration schemas
"""

from chatgate.core.domain.config_schema import (
    AppConfig,
    ResolvedAccount,
    resolve_account,
    validate_app_config,
)
from chatgate.core.domain.errors import (
    ChatgateError,
    ConfigError,
    PairingError,
    TransportError,
    ValidationError,
)
from chatgate.core.domain.inbound import (
    GateDecision,
    InboundContext,
    InboundMessage,
    InboundOutcome,
    ReplyPayload,
)

__all__ = [
    "AppConfig",
    "ResolvedAccount",
    "resolve_account",
    "validate_app_config",
    "ChatgateError",
    "ConfigError",
    "PairingError",
    "TransportError",
    "ValidationError",
    "GateDecision",
    "InboundContext",
    "InboundMessage",
    "InboundOutcome",
    "ReplyPayload",
]
