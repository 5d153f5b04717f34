"""
Client Mode Resolution

Clients may declare a *mode* alongside each message (an id, a label and
model/agent/skills hints). The hints are untrusted: each is trimmed and
length-capped, and a mode id that fails validation is dropped rather
than rejected.

Mode ids of the form ``inst_<name>_<suffix>`` (suffix ``ecom``, ``docs``
or ``media``) select a built-in persona and also look up routing
overrides under the bare ``inst_<name>`` key.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, Mapping

from chatgate.core.domain.config_schema import normalize_account_id
from chatgate.core.domain.enums import InstanceIdentity
from chatgate.core.domain.inbound import InboundMessage
from chatgate.core.domain.machine import (
    AGENT_HINT_MAX,
    MODEL_HINT_MAX,
    SKILLS_HINT_MAX,
    MachineRoutingConfig,
)

MODE_ID_MAX = 32
MODE_LABEL_MAX = 40
ACCOUNT_TARGET_MAX = 64

_MODE_ID_RE = re.compile(r"^[a-z0-9_-]{1,32}$")
_INSTANCE_MODE_RE = re.compile(r"^inst_(.+)_(ecom|docs|media)$")


@dataclass(frozen=True)
class ModeMetadata:
    """Normalized client mode hints. Every field is independently optional."""

    mode_id: str | None = None
    mode_label: str | None = None
    model_hint: str | None = None
    agent_hint: str | None = None
    skills_hint: str | None = None


def normalize_mode_hint(value: str | None, max_length: int = MODEL_HINT_MAX) -> str | None:
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    return trimmed[:max_length]


def normalize_mode_id(value: str | None) -> str | None:
    """Lower-case and validate a mode id; invalid ids become ``None``."""
    normalized = normalize_mode_hint(value, MODE_ID_MAX)
    if not normalized:
        return None
    normalized = normalized.lower()
    if not _MODE_ID_RE.match(normalized):
        return None
    return normalized


def resolve_mode_metadata(message: InboundMessage) -> ModeMetadata:
    return ModeMetadata(
        mode_id=normalize_mode_id(message.mode_id),
        mode_label=normalize_mode_hint(message.mode_label, MODE_LABEL_MAX),
        model_hint=normalize_mode_hint(message.model_hint, MODEL_HINT_MAX),
        agent_hint=normalize_mode_hint(message.agent_hint, AGENT_HINT_MAX),
        skills_hint=normalize_mode_hint(message.skills_hint, SKILLS_HINT_MAX),
    )


def derive_mode_lookup_ids(mode_id: str | None) -> list[str]:
    """Keys to try, most specific first: the full id, then ``inst_<name>``."""
    if not mode_id:
        return []
    out = [mode_id]
    match = _INSTANCE_MODE_RE.match(mode_id)
    if match:
        out.append(f"inst_{match.group(1)}")
    return out


def resolve_identity_from_mode_id(mode_id: str | None) -> InstanceIdentity | None:
    if not mode_id:
        return None
    match = _INSTANCE_MODE_RE.match(mode_id)
    if not match:
        return None
    return InstanceIdentity(match.group(2))


def resolve_mode_value(
    source: Mapping[str, str] | None,
    mode_ids: Iterable[str],
    max_length: int,
) -> str | None:
    """First non-empty value whose (normalized) key matches a lookup id."""
    if not source:
        return None
    for mode_id in mode_ids:
        key = next((entry for entry in source if normalize_mode_id(entry) == mode_id), None)
        if key is None:
            continue
        value = normalize_mode_hint(source[key], max_length)
        if value:
            return value
    return None


def apply_machine_routing_hints(
    mode: ModeMetadata,
    routing: MachineRoutingConfig | None,
) -> ModeMetadata:
    """Fill hints the client left empty from the machine routing overrides."""
    if routing is None:
        return mode
    mode_ids = derive_mode_lookup_ids(mode.mode_id)
    return replace(
        mode,
        model_hint=mode.model_hint
        or resolve_mode_value(routing.mode_model_hints, mode_ids, MODEL_HINT_MAX),
        agent_hint=mode.agent_hint
        or resolve_mode_value(routing.mode_agent_hints, mode_ids, AGENT_HINT_MAX),
        skills_hint=mode.skills_hint
        or resolve_mode_value(routing.mode_skills_hints, mode_ids, SKILLS_HINT_MAX),
    )


def resolve_mode_routing_map(
    account_map: Mapping[str, str] | None,
    routing: MachineRoutingConfig | None,
) -> Mapping[str, str] | None:
    """The machine-level map wins over the account-level map."""
    if routing is not None and routing.mode_account_map is not None:
        return routing.mode_account_map
    return account_map


def resolve_mode_route_account_id(
    account_id: str,
    mode: ModeMetadata,
    mapping: Mapping[str, str] | None,
) -> str:
    """Account the message should be routed under after mode overrides."""
    if not mode.mode_id or not mapping:
        return account_id

    mapped = None
    for candidate in derive_mode_lookup_ids(mode.mode_id):
        mapped = next(
            (target for key, target in mapping.items() if normalize_mode_id(key) == candidate),
            None,
        )
        if mapped:
            break

    normalized = normalize_mode_hint(mapped, ACCOUNT_TARGET_MAX)
    if not normalized:
        return account_id
    return normalize_account_id(normalized)


def build_mode_untrusted_context(mode: ModeMetadata) -> list[str]:
    """Render mode hints as context lines the agent must treat as untrusted."""
    lines: list[str] = []
    if mode.mode_id or mode.mode_label:
        label = f" ({mode.mode_label})" if mode.mode_label else ""
        lines.append(f"Client mode: {mode.mode_id or 'unknown'}{label}")
    if mode.model_hint:
        lines.append(f"Client model hint: {mode.model_hint}")
    if mode.agent_hint:
        lines.append(f"Client agent hint: {mode.agent_hint}")
    if mode.skills_hint:
        lines.append(f"Client skills hint: {mode.skills_hint}")
    return lines
