"""
Configuration Schema Validation

Pydantic models for the channel adapter configuration. Every optional
field states its default here so the pipeline never re-checks loosely
typed values at message time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatgate.core.domain.enums import DmPolicy, GroupPolicy, PeerKind
from chatgate.core.domain.errors import ConfigError

CHANNEL_ID = "vimalinx"
CHANNEL_LABEL = "Vimalinx"
DEFAULT_ACCOUNT_ID = "default"

DEFAULT_CONTROL_COMMANDS = (
    "help",
    "status",
    "new",
    "reset",
    "stop",
    "model",
    "think",
    "verbose",
    "compact",
    "restart",
    "whoami",
)

AllowEntry = Union[str, int]

_ACCOUNT_ID_INVALID = re.compile(r"[^a-z0-9_-]+")


def normalize_account_id(value: str | None) -> str:
    """Lower-case an account id and collapse unsupported characters to ``-``."""
    trimmed = (value or "").strip().lower()
    if not trimmed:
        return DEFAULT_ACCOUNT_ID
    normalized = _ACCOUNT_ID_INVALID.sub("-", trimmed).strip("-")[:64]
    return normalized or DEFAULT_ACCOUNT_ID


class GroupConfig(BaseModel):
    """Per-chat overrides, keyed by chat id, chat name or ``*``."""

    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    require_mention: Optional[bool] = None
    allow_from: list[AllowEntry] = Field(default_factory=list)
    system_prompt: Optional[str] = None


class SecurityConfig(BaseModel):
    """Transport and abuse-protection settings for one account.

    The pipeline reads the rate limits, and the outbound sender reads
    ``require_https``, ``hmac_secret`` and ``sign_outbound``. The remaining
    fields configure webhook receipt in the host, together with the
    helpers in ``chatgate.infrastructure.security.signing``.
    """

    model_config = ConfigDict(extra="forbid")

    require_https: bool = False
    allow_token_in_query: bool = False
    hmac_secret: Optional[str] = None
    require_signature: Optional[bool] = Field(
        None,
        description="Defaults to whether an HMAC secret is configured",
    )
    timestamp_skew_ms: int = Field(5 * 60 * 1000, gt=0)
    rate_limit_per_minute: int = Field(120, ge=0, description="0 disables the limit")
    rate_limit_per_minute_per_sender: int = Field(60, ge=0, description="0 disables the limit")
    max_payload_bytes: int = Field(1024 * 1024, gt=0)
    allowed_ips: list[str] = Field(default_factory=list)
    sign_outbound: bool = True

    @field_validator("hmac_secret")
    @classmethod
    def _strip_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("allowed_ips")
    @classmethod
    def _strip_ips(cls, value: list[str]) -> list[str]:
        return [entry.strip() for entry in value if entry.strip()]

    @property
    def signature_required(self) -> bool:
        if self.require_signature is not None:
            return self.require_signature
        return self.hmac_secret is not None

    @property
    def should_sign_outbound(self) -> bool:
        return self.sign_outbound and self.hmac_secret is not None


class AccountConfig(BaseModel):
    """Settings for one channel account. ``None`` means inherit."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    name: Optional[str] = None
    base_url: Optional[str] = None
    token: Optional[str] = None
    dm_policy: Optional[DmPolicy] = None
    group_policy: Optional[GroupPolicy] = None
    allow_from: list[AllowEntry] = Field(default_factory=list)
    group_allow_from: list[AllowEntry] = Field(default_factory=list)
    groups: dict[str, GroupConfig] = Field(default_factory=dict)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    mode_account_map: Optional[dict[str, str]] = None


class ChannelSection(AccountConfig):
    """Channel-wide settings plus per-account overrides."""

    accounts: dict[str, AccountConfig] = Field(default_factory=dict)
    default_account: Optional[str] = None


class ChannelDefaults(BaseModel):
    model_config = ConfigDict(extra="forbid")

    group_policy: Optional[GroupPolicy] = None


class ChannelsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    defaults: ChannelDefaults = Field(default_factory=ChannelDefaults)
    vimalinx: ChannelSection = Field(default_factory=ChannelSection)


class CommandsConfig(BaseModel):
    """Text command handling."""

    model_config = ConfigDict(extra="forbid")

    use_access_groups: bool = True
    text: bool = True
    disabled_surfaces: list[str] = Field(default_factory=list)
    control_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_CONTROL_COMMANDS))


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store: Optional[str] = Field(
        None,
        description="Session store path; '{agentId}' is substituted",
    )


class EnvelopeConfig(BaseModel):
    """How the display envelope around the raw body is rendered."""

    model_config = ConfigDict(extra="forbid")

    timezone: str = Field("utc", description="'utc', 'local' or an IANA zone name")
    include_timestamp: bool = True
    include_elapsed: bool = True


class RouteBinding(BaseModel):
    """Binds a channel account and/or peer to an agent."""

    model_config = ConfigDict(extra="forbid")

    agent_id: str = Field(..., min_length=1, max_length=64, pattern="^[a-zA-Z0-9_-]+$")
    account_id: Optional[str] = None
    peer_kind: Optional[PeerKind] = None
    peer_id: Optional[str] = None


class AgentsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default: str = Field("main", min_length=1, max_length=64, pattern="^[a-zA-Z0-9_-]+$")
    bindings: list[RouteBinding] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Root configuration document."""

    model_config = ConfigDict(extra="forbid")

    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    envelope: EnvelopeConfig = Field(default_factory=EnvelopeConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)


@dataclass(frozen=True)
class ResolvedAccount:
    """An account with channel-wide settings merged underneath it."""

    account_id: str
    config: AccountConfig
    enabled: bool = True
    name: str | None = None
    base_url: str | None = None
    token: str | None = None

    @property
    def dm_policy(self) -> DmPolicy:
        return self.config.dm_policy or DmPolicy.PAIRING

    def group_policy(self, default: GroupPolicy | None = None) -> GroupPolicy:
        return self.config.group_policy or default or GroupPolicy.ALLOWLIST


def validate_app_config(
    data: dict[str, Any] | None,
    file_path: Optional[Path] = None,
) -> AppConfig:
    """
    Validate a parsed configuration document.

    Args:
        data: Configuration dictionary (``None`` for an empty file)
        file_path: Optional file path for error messages

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If validation fails
    """
    try:
        return AppConfig(**(data or {}))
    except Exception as e:
        details: dict[str, Any] = {}
        if file_path:
            details["file_path"] = str(file_path)
        raise ConfigError(str(e), details=details) from e


def resolve_account(config: AppConfig, account_id: str | None = None) -> ResolvedAccount:
    """Merge the channel section with one of its account entries.

    Fields explicitly set on the account entry override the channel-wide
    values; everything else is inherited.
    """
    section = config.channels.vimalinx
    resolved_id = normalize_account_id(account_id or section.default_account)
    entry = next(
        (
            value
            for key, value in section.accounts.items()
            if normalize_account_id(key) == resolved_id
        ),
        None,
    )

    merged = section.model_dump(exclude={"accounts", "default_account"})
    if entry is not None:
        merged.update(entry.model_dump(exclude_unset=True))
    account = AccountConfig.model_validate(merged)

    return ResolvedAccount(
        account_id=resolved_id,
        config=account,
        enabled=account.enabled,
        name=(account.name or "").strip() or None,
        base_url=(account.base_url or "").strip() or None,
        token=(account.token or "").strip() or None,
    )
