"""Tests for client mode parsing and persona/routing resolution."""

from chatgate.core.domain.enums import InstanceIdentity
from chatgate.core.domain.inbound import InboundMessage
from chatgate.core.domain.machine import MachineRoutingConfig
from chatgate.core.domain.mode import (
    ModeMetadata,
    apply_machine_routing_hints,
    build_mode_untrusted_context,
    derive_mode_lookup_ids,
    normalize_mode_id,
    resolve_identity_from_mode_id,
    resolve_mode_metadata,
    resolve_mode_route_account_id,
    resolve_mode_routing_map,
)
from chatgate.core.domain.personas import (
    IDENTITY_SYSTEM_PROMPTS,
    merge_system_prompts,
    resolve_identity_system_prompt,
)


def _message(**kwargs) -> InboundMessage:
    return InboundMessage(sender_id="u-1", chat_id="c-1", text="hi", **kwargs)


class TestModeId:
    def test_instance_mode_is_lowercased(self) -> None:
        assert normalize_mode_id(" INST_Shop1_ECOM ") == "inst_shop1_ecom"

    def test_invalid_characters_are_discarded(self) -> None:
        assert normalize_mode_id("bad id!") is None

    def test_too_long_id_is_truncated_before_validation(self) -> None:
        assert normalize_mode_id("a" * 40) == "a" * 32

    def test_lookup_ids_include_instance_base(self) -> None:
        assert derive_mode_lookup_ids("inst_shop1_ecom") == ["inst_shop1_ecom", "inst_shop1"]

    def test_lookup_ids_for_plain_mode(self) -> None:
        assert derive_mode_lookup_ids("writer") == ["writer"]

    def test_identity_from_instance_mode(self) -> None:
        assert resolve_identity_from_mode_id("inst_shop1_ecom") == InstanceIdentity.ECOM
        assert resolve_identity_from_mode_id("inst_a_b_docs") == InstanceIdentity.DOCS
        assert resolve_identity_from_mode_id("writer") is None


class TestModeMetadata:
    def test_hints_are_trimmed_and_capped(self) -> None:
        mode = resolve_mode_metadata(
            _message(
                mode_id="INST_Shop1_ECOM",
                mode_label="  Shop  ",
                model_hint="m" * 200,
                skills_hint="s" * 200,
            )
        )
        assert mode.mode_id == "inst_shop1_ecom"
        assert mode.mode_label == "Shop"
        assert mode.model_hint == "m" * 120
        assert mode.skills_hint == "s" * 160
        assert mode.agent_hint is None

    def test_machine_hints_fill_missing_values_by_instance_base(self) -> None:
        routing = MachineRoutingConfig(
            mode_model_hints={"inst_shop1": "gpt-x"},
            mode_agent_hints={"inst_shop1_ecom": "seller"},
        )
        mode = apply_machine_routing_hints(
            ModeMetadata(mode_id="inst_shop1_ecom", agent_hint="client-agent"),
            routing,
        )
        assert mode.model_hint == "gpt-x"
        assert mode.agent_hint == "client-agent"

    def test_without_routing_mode_is_unchanged(self) -> None:
        mode = ModeMetadata(mode_id="writer")
        assert apply_machine_routing_hints(mode, None) is mode


class TestModeRouting:
    def test_machine_map_wins_over_account_map(self) -> None:
        routing = MachineRoutingConfig(mode_account_map={"writer": "machine"})
        assert resolve_mode_routing_map({"writer": "account"}, routing) == {"writer": "machine"}
        assert resolve_mode_routing_map({"writer": "account"}, MachineRoutingConfig()) == {
            "writer": "account"
        }

    def test_mapped_account_is_normalized(self) -> None:
        mode = ModeMetadata(mode_id="inst_shop1_ecom")
        account = resolve_mode_route_account_id("default", mode, {"INST_SHOP1": "Shop Account"})
        assert account == "shop-account"

    def test_unmapped_mode_keeps_original_account(self) -> None:
        mode = ModeMetadata(mode_id="writer")
        assert resolve_mode_route_account_id("default", mode, {"other": "x"}) == "default"

    def test_no_mode_keeps_original_account(self) -> None:
        assert resolve_mode_route_account_id("default", ModeMetadata(), {"x": "y"}) == "default"


class TestUntrustedContext:
    def test_renders_all_hints(self) -> None:
        lines = build_mode_untrusted_context(
            ModeMetadata(
                mode_id="writer",
                mode_label="Writer",
                model_hint="m1",
                agent_hint="a1",
                skills_hint="s1",
            )
        )
        assert lines == [
            "Client mode: writer (Writer)",
            "Client model hint: m1",
            "Client agent hint: a1",
            "Client skills hint: s1",
        ]

    def test_label_without_id_renders_unknown(self) -> None:
        assert build_mode_untrusted_context(ModeMetadata(mode_label="X")) == [
            "Client mode: unknown (X)"
        ]

    def test_empty_mode_renders_nothing(self) -> None:
        assert build_mode_untrusted_context(ModeMetadata()) == []


class TestPersonas:
    def test_every_identity_has_a_prompt(self) -> None:
        for identity in InstanceIdentity:
            assert IDENTITY_SYSTEM_PROMPTS[identity]

    def test_persona_is_merged_after_group_prompt(self) -> None:
        persona = resolve_identity_system_prompt(InstanceIdentity.MEDIA)
        merged = merge_system_prompts("Group rules.", persona)
        assert merged == f"Group rules.\n\n{persona}"

    def test_merge_of_nothing_is_none(self) -> None:
        assert merge_system_prompts(None, "") is None
