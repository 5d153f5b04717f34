"""Group chat classification against the configured per-group map."""

from __future__ import annotations

from dataclasses import dataclass

from chatgate.core.domain.config_schema import GroupConfig

WILDCARD_KEY = "*"


@dataclass(frozen=True)
class GroupMatch:
    """Outcome of resolving a chat against the ``groups`` map.

    Attributes:
        group_config: Config matched by chat id or chat name.
        wildcard_config: The ``*`` entry, carried as a fallback source.
        allowed: Whether the chat is admitted at the group level.
        allowlist_configured: Whether any ``groups`` map exists at all.
    """

    group_config: GroupConfig | None
    wildcard_config: GroupConfig | None
    allowed: bool
    allowlist_configured: bool


def resolve_group_match(
    groups: dict[str, GroupConfig] | None,
    chat_id: str,
    chat_name: str | None = None,
) -> GroupMatch:
    """Look up a chat by exact id, then trimmed name, then wildcard."""
    groups = groups or {}
    allowlist_configured = len(groups) > 0
    wildcard = groups.get(WILDCARD_KEY)

    direct = groups.get(chat_id)
    if direct is not None:
        return GroupMatch(direct, wildcard, True, allowlist_configured)

    name_key = (chat_name or "").strip()
    if name_key and name_key in groups:
        return GroupMatch(groups[name_key], wildcard, True, allowlist_configured)

    if wildcard is not None:
        return GroupMatch(None, wildcard, True, allowlist_configured)

    return GroupMatch(None, None, not allowlist_configured, allowlist_configured)


def resolve_require_mention(match: GroupMatch) -> bool:
    """Mention is required unless the group (or wildcard) turns it off."""
    if match.group_config is not None and match.group_config.require_mention is not None:
        return match.group_config.require_mention
    if match.wildcard_config is not None and match.wildcard_config.require_mention is not None:
        return match.wildcard_config.require_mention
    return True


def resolve_group_system_prompt(match: GroupMatch) -> str | None:
    if match.group_config is None or not match.group_config.system_prompt:
        return None
    return match.group_config.system_prompt.strip() or None
