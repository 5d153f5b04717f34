"""
Sender Allowlist Evaluation

Normalizes configured allow-lists and matches senders against them.
``match_allowlist`` is policy-free: an empty list imposes no restriction
and callers decide what "nothing configured" means for their scope.
The group admission helpers build the nested (channel list, group list)
decision on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from chatgate.core.domain.config_schema import CHANNEL_ID, AllowEntry
from chatgate.core.domain.enums import GroupPolicy

_PREFIXES = (f"{CHANNEL_ID}:", "user:")


@dataclass(frozen=True)
class AllowlistMatch:
    """Result of matching a sender against one allow-list.

    Attributes:
        allowed: Whether the sender is admitted by this list.
        match_key: The list entry that matched, if any.
        match_source: ``"id"``, ``"name"`` or ``None`` for an empty list.
    """

    allowed: bool
    match_key: str | None = None
    match_source: str | None = None


def normalize_entry(entry: AllowEntry | None) -> str:
    """Coerce one identifier into its comparable form."""
    if entry is None or isinstance(entry, bool):
        return ""
    text = str(entry).strip().lower()
    for prefix in _PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
    return text


def normalize_allowlist(raw: Iterable[AllowEntry | None] | None) -> list[str]:
    """Trim, lower-case and de-duplicate a configured allow-list.

    Order of first appearance is preserved; empty entries are dropped.
    """
    seen: set[str] = set()
    out: list[str] = []
    for entry in raw or []:
        normalized = normalize_entry(entry)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
    return out


def merge_allowlists(*lists: Iterable[AllowEntry | None] | None) -> list[str]:
    """Union several allow-lists into one normalized list."""
    combined: list[AllowEntry | None] = []
    for items in lists:
        combined.extend(items or [])
    return normalize_allowlist(combined)


def match_allowlist(
    allow_from: Iterable[AllowEntry | None] | None,
    sender_id: str,
    sender_name: str | None = None,
) -> AllowlistMatch:
    """Match a sender by id or (case-insensitive) display name."""
    allow = normalize_allowlist(allow_from)
    if not allow:
        return AllowlistMatch(allowed=True)

    sender_key = normalize_entry(sender_id)
    if sender_key and sender_key in allow:
        return AllowlistMatch(allowed=True, match_key=sender_key, match_source="id")

    name_key = (sender_name or "").strip().lower()
    if name_key and name_key in allow:
        return AllowlistMatch(allowed=True, match_key=name_key, match_source="name")

    return AllowlistMatch(allowed=False)


def resolve_nested_allowlist_decision(
    *,
    outer_configured: bool,
    outer_matched: bool,
    inner_configured: bool,
    inner_matched: bool,
) -> bool:
    """Combine an outer (channel) and inner (group) allow-list result.

    An unconfigured outer list admits everyone; otherwise the outer list
    must match, and a configured inner list must match as well.
    """
    if not outer_configured:
        return True
    if not outer_matched:
        return False
    if not inner_configured:
        return True
    return inner_matched


def resolve_group_allow(
    *,
    group_policy: GroupPolicy,
    outer_allow_from: Iterable[AllowEntry | None] | None,
    inner_allow_from: Iterable[AllowEntry | None] | None,
    sender_id: str,
    sender_name: str | None = None,
) -> bool:
    """Decide whether a sender may talk in a group under ``group_policy``.

    With the ``allowlist`` policy the sender must match every non-empty
    list among the channel-wide and group-scoped lists. If both lists are
    empty the sender is denied.
    """
    if group_policy == GroupPolicy.DISABLED:
        return False
    if group_policy == GroupPolicy.OPEN:
        return True

    outer = normalize_allowlist(outer_allow_from)
    inner = normalize_allowlist(inner_allow_from)
    if not outer and not inner:
        return False

    outer_match = match_allowlist(outer, sender_id, sender_name)
    inner_match = match_allowlist(inner, sender_id, sender_name)

    # The outer scope counts as configured whenever either list has entries,
    # so an inner-only list still goes through the nested check.
    return resolve_nested_allowlist_decision(
        outer_configured=True,
        outer_matched=outer_match.allowed if outer else True,
        inner_configured=bool(inner),
        inner_matched=inner_match.allowed,
    )
