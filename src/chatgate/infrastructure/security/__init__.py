"""Rate limiting and request signing."""

from chatgate.infrastructure.security.rate_limiter import SenderRateLimiter
from chatgate.infrastructure.security.signing import (
    NonceWindow,
    create_signature,
    verify_signature,
)

__all__ = ["SenderRateLimiter", "NonceWindow", "create_signature", "verify_signature"]
