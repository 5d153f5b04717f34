"""
Core Domain Enums

Defines chat classifications, policy values and drop reasons
to eliminate magic strings throughout the codebase.
"""

from enum import Enum


class ChatType(str, Enum):
    """Classification of the chat a message arrived on."""

    DIRECT = "direct"
    GROUP = "group"


class PeerKind(str, Enum):
    """Peer kind handed to the agent route resolver."""

    DM = "dm"
    GROUP = "group"


class DmPolicy(str, Enum):
    """Admission policy for direct messages."""

    OPEN = "open"
    PAIRING = "pairing"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class GroupPolicy(str, Enum):
    """Admission policy for group messages."""

    OPEN = "open"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class DropReason(str, Enum):
    """Why the pipeline dropped an inbound message."""

    EMPTY_BODY = "empty_body"
    RATE_LIMITED = "rate_limited"
    GROUP_NOT_ALLOWLISTED = "group_not_allowlisted"
    GROUP_DISABLED = "group_disabled"
    UNAUTHORIZED_COMMAND = "unauthorized_command"
    GROUP_POLICY = "group_policy"
    DM_DISABLED = "dm_disabled"
    DM_NOT_ALLOWED = "dm_not_allowed"
    PAIRING_REQUIRED = "pairing_required"
    NO_MENTION = "no_mention"


class InstanceIdentity(str, Enum):
    """Built-in personas selected by ``inst_<name>_<suffix>`` mode ids."""

    ECOM = "ecom"
    DOCS = "docs"
    MEDIA = "media"
