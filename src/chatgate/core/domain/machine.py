"""
Registered Machine Profiles

A machine profile is pushed by the chat server when this host registers
itself. It may carry per-mode routing overrides (target account, model,
agent and skills hints) and provider sync settings. Profiles are parsed
defensively: invalid entries are dropped, never raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_MODE_ID_RE = re.compile(r"^[a-z0-9_-]{1,32}$")
_ACCOUNT_TARGET_RE = re.compile(r"^[a-z0-9_-]{1,64}$")
_MACHINE_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{2,63}$")
_MINIMAX_MODEL_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")

MODEL_HINT_MAX = 120
AGENT_HINT_MAX = 120
SKILLS_HINT_MAX = 160
API_KEY_MAX = 512


@dataclass(frozen=True)
class MachineRoutingConfig:
    """Per-mode overrides keyed by normalized mode id."""

    mode_account_map: dict[str, str] | None = None
    mode_model_hints: dict[str, str] | None = None
    mode_agent_hints: dict[str, str] | None = None
    mode_skills_hints: dict[str, str] | None = None


@dataclass(frozen=True)
class MinimaxProviderSync:
    api_key: str
    endpoint: str | None = None
    model_id: str | None = None


@dataclass(frozen=True)
class ProviderSyncConfig:
    minimax: MinimaxProviderSync | None = None


@dataclass(frozen=True)
class RegisteredMachineProfile:
    """Profile stored per account after a successful registration."""

    machine_id: str
    routing: MachineRoutingConfig | None = None
    provider_sync: ProviderSyncConfig | None = None
    updated_at: int | None = None
    last_seen_at: int | None = None


def normalize_machine_id(value: str | None) -> str | None:
    normalized = (value or "").strip().lower()
    if not normalized or not _MACHINE_ID_RE.match(normalized):
        return None
    return normalized


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _parse_mode_account_map(value: Any) -> dict[str, str] | None:
    source = _as_dict(value)
    if source is None:
        return None
    out: dict[str, str] = {}
    for raw_mode, raw_target in source.items():
        mode_id = str(raw_mode).strip().lower()
        if not _MODE_ID_RE.match(mode_id):
            continue
        target = raw_target.strip().lower() if isinstance(raw_target, str) else ""
        if not _ACCOUNT_TARGET_RE.match(target):
            continue
        out[mode_id] = target
    return out or None


def _parse_mode_hint_map(value: Any, max_length: int) -> dict[str, str] | None:
    source = _as_dict(value)
    if source is None:
        return None
    out: dict[str, str] = {}
    for raw_mode, raw_hint in source.items():
        mode_id = str(raw_mode).strip().lower()
        if not _MODE_ID_RE.match(mode_id):
            continue
        hint = raw_hint.strip() if isinstance(raw_hint, str) else ""
        if not hint:
            continue
        out[mode_id] = hint[:max_length]
    return out or None


def _parse_provider_sync(value: Any) -> ProviderSyncConfig | None:
    source = _as_dict(value)
    minimax = _as_dict(source.get("minimax")) if source else None
    if minimax is None:
        return None

    api_key = minimax.get("apiKey")
    api_key = api_key.strip() if isinstance(api_key, str) else ""
    if not api_key or len(api_key) > API_KEY_MAX:
        return None

    endpoint = minimax.get("endpoint")
    endpoint = endpoint.strip().lower() if isinstance(endpoint, str) else None
    if endpoint not in ("global", "cn"):
        endpoint = None

    model_id = minimax.get("modelId")
    model_id = model_id.strip() if isinstance(model_id, str) else None
    if model_id is not None and not _MINIMAX_MODEL_RE.match(model_id):
        model_id = None

    return ProviderSyncConfig(
        minimax=MinimaxProviderSync(api_key=api_key, endpoint=endpoint, model_id=model_id)
    )


def parse_registered_machine_profile(payload: Any) -> RegisteredMachineProfile | None:
    """Parse a machine registration response.

    Expected shape::

        {"machine": {"machineId": "...", "updatedAt": 0, "lastSeenAt": 0},
         "config": {"routing": {...}, "providerSync": {...}}}

    Returns:
        The parsed profile, or ``None`` when no valid machine id is present.
    """
    root = _as_dict(payload) or {}
    machine = _as_dict(root.get("machine")) or {}
    config = _as_dict(root.get("config")) or {}

    raw_machine_id = machine.get("machineId")
    machine_id = normalize_machine_id(raw_machine_id) if isinstance(raw_machine_id, str) else None
    if not machine_id:
        return None

    routing_source = _as_dict(config.get("routing"))
    routing = None
    if routing_source is not None:
        routing = MachineRoutingConfig(
            mode_account_map=_parse_mode_account_map(routing_source.get("modeAccountMap")),
            mode_model_hints=_parse_mode_hint_map(
                routing_source.get("modeModelHints"), MODEL_HINT_MAX
            ),
            mode_agent_hints=_parse_mode_hint_map(
                routing_source.get("modeAgentHints"), AGENT_HINT_MAX
            ),
            mode_skills_hints=_parse_mode_hint_map(
                routing_source.get("modeSkillsHints"), SKILLS_HINT_MAX
            ),
        )

    updated_at = machine.get("updatedAt")
    last_seen_at = machine.get("lastSeenAt")
    return RegisteredMachineProfile(
        machine_id=machine_id,
        routing=routing,
        provider_sync=_parse_provider_sync(config.get("providerSync")),
        updated_at=int(updated_at) if isinstance(updated_at, (int, float)) else None,
        last_seen_at=int(last_seen_at) if isinstance(last_seen_at, (int, float)) else None,
    )
