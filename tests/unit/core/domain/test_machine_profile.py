"""Tests for machine profile parsing."""

from chatgate.core.domain.machine import normalize_machine_id, parse_registered_machine_profile


def test_parses_full_profile() -> None:
    profile = parse_registered_machine_profile(
        {
            "machine": {"machineId": " Host-01 ", "updatedAt": 10, "lastSeenAt": 20},
            "config": {
                "routing": {
                    "modeAccountMap": {"INST_Shop1": "Shop", "bad id": "x", "docs": "bad target!"},
                    "modeModelHints": {"inst_shop1": "  gpt-x  ", "empty": "  "},
                    "modeSkillsHints": {"writer": "s" * 300},
                },
                "providerSync": {
                    "minimax": {"apiKey": " key ", "endpoint": "CN", "modelId": "abab6.5"}
                },
            },
        }
    )
    assert profile is not None
    assert profile.machine_id == "host-01"
    assert profile.updated_at == 10
    assert profile.last_seen_at == 20
    assert profile.routing.mode_account_map == {"inst_shop1": "shop"}
    assert profile.routing.mode_model_hints == {"inst_shop1": "gpt-x"}
    assert profile.routing.mode_skills_hints == {"writer": "s" * 160}
    assert profile.routing.mode_agent_hints is None
    minimax = profile.provider_sync.minimax
    assert minimax.api_key == "key"
    assert minimax.endpoint == "cn"
    assert minimax.model_id == "abab6.5"


def test_missing_machine_id_returns_none() -> None:
    assert parse_registered_machine_profile({"machine": {}}) is None
    assert parse_registered_machine_profile("not a dict") is None


def test_invalid_machine_id_is_rejected() -> None:
    assert normalize_machine_id("ab") is None
    assert normalize_machine_id("-host") is None
    assert normalize_machine_id("host_1") == "host_1"


def test_provider_sync_without_api_key_is_dropped() -> None:
    profile = parse_registered_machine_profile(
        {
            "machine": {"machineId": "host-01"},
            "config": {"providerSync": {"minimax": {"endpoint": "global"}}},
        }
    )
    assert profile is not None
    assert profile.provider_sync is None
    assert profile.routing is None


def test_unknown_endpoint_and_bad_model_are_cleared() -> None:
    profile = parse_registered_machine_profile(
        {
            "machine": {"machineId": "host-01"},
            "config": {
                "providerSync": {
                    "minimax": {"apiKey": "k", "endpoint": "eu", "modelId": "../etc"}
                }
            },
        }
    )
    assert profile.provider_sync.minimax.endpoint is None
    assert profile.provider_sync.minimax.model_id is None
