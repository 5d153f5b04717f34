"""Domain-specific exception types for chatgate.

Admission denials (rate limited, not allow-listed, unpaired, ...) are
ordinary control flow and never use these types. Exceptions are reserved
for configuration faults, malformed payloads and transport failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class ChatgateError(Exception):
    """Base exception for chatgate domain errors."""

    message: str
    code: str = "chatgate_error"
    details: Dict[str, Any] | None = None
    status_code: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}


class ConfigError(ChatgateError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)


class ValidationError(ChatgateError):
    """Error raised for malformed inbound payloads."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="validation_error", details=details)


class TransportError(ChatgateError):
    """Error raised when the outbound HTTP transport rejects a send."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="transport_error",
            details=details,
            status_code=status_code,
        )


class PairingError(ChatgateError):
    """Error raised for pairing store failures."""

    def __init__(
        self,
        message: str,
        *,
        channel: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if channel:
            details.setdefault("channel", channel)
        self.channel = channel
        super().__init__(message=message, code="pairing_error", details=details)
