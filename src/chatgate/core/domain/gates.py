"""
Command and Mention Gates

Pure decision functions evaluated once per message. Neither result is
persisted; both feed the pipeline's drop/admit sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class CommandAuthorizer:
    """One allow-list scope that can authorize control commands.

    Attributes:
        configured: Whether the scope has any entries.
        allowed: Whether the sender matched the scope.
    """

    configured: bool
    allowed: bool


@dataclass(frozen=True)
class CommandGateResult:
    command_authorized: bool
    should_block: bool


@dataclass(frozen=True)
class MentionGateResult:
    effective_was_mentioned: bool
    should_skip: bool


def resolve_command_authorized(
    *,
    use_access_groups: bool,
    authorizers: Sequence[CommandAuthorizer],
) -> bool:
    """Whether the sender may issue control commands at all.

    Without access groups everyone is authorized. With access groups a
    configured scope must match the sender; scopes with no entries impose
    no restriction.
    """
    if not use_access_groups:
        return True
    configured = [entry for entry in authorizers if entry.configured]
    if not configured:
        return True
    return any(entry.allowed for entry in configured)


def resolve_control_command_gate(
    *,
    use_access_groups: bool,
    authorizers: Sequence[CommandAuthorizer],
    allow_text_commands: bool,
    has_control_command: bool,
) -> CommandGateResult:
    """Block unauthorized control commands.

    When text commands are disabled, command detection is moot and the
    message is treated as ordinary text.
    """
    command_authorized = resolve_command_authorized(
        use_access_groups=use_access_groups,
        authorizers=authorizers,
    )
    should_block = allow_text_commands and has_control_command and not command_authorized
    return CommandGateResult(command_authorized=command_authorized, should_block=should_block)


def resolve_mention_gating_with_bypass(
    *,
    is_group: bool,
    require_mention: bool,
    was_mentioned: bool,
    allow_text_commands: bool,
    has_control_command: bool,
    command_authorized: bool,
    can_detect_mention: bool = True,
) -> MentionGateResult:
    """Skip unmentioned group chatter unless it is an authorized command."""
    should_bypass = (
        is_group
        and require_mention
        and not was_mentioned
        and allow_text_commands
        and has_control_command
        and command_authorized
    )
    effective = was_mentioned or should_bypass
    should_skip = is_group and require_mention and can_detect_mention and not effective
    return MentionGateResult(effective_was_mentioned=effective, should_skip=should_skip)
