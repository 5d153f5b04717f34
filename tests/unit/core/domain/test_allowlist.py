"""Tests for allow-list normalization and nested group admission."""

import pytest

from chatgate.core.domain.allowlist import (
    match_allowlist,
    merge_allowlists,
    normalize_allowlist,
    resolve_group_allow,
    resolve_nested_allowlist_decision,
)
from chatgate.core.domain.enums import GroupPolicy


class TestNormalizeAllowlist:
    def test_trims_lowercases_and_dedupes(self) -> None:
        assert normalize_allowlist([" Alice ", "alice", "BOB", "", None]) == ["alice", "bob"]

    def test_coerces_numbers_to_strings(self) -> None:
        assert normalize_allowlist([12345, "12345"]) == ["12345"]

    def test_strips_channel_and_user_prefixes(self) -> None:
        assert normalize_allowlist(["vimalinx:Alice", "user:bob"]) == ["alice", "bob"]

    def test_merge_preserves_first_appearance_order(self) -> None:
        assert merge_allowlists(["b", "a"], ["A", "c"], None) == ["b", "a", "c"]


class TestMatchAllowlist:
    def test_empty_list_allows_everyone(self) -> None:
        result = match_allowlist([], "anyone")
        assert result.allowed is True
        assert result.match_source is None

    def test_matches_by_sender_id(self) -> None:
        result = match_allowlist(["u-1"], "U-1")
        assert result.allowed is True
        assert result.match_source == "id"

    def test_matches_by_sender_name_case_insensitive(self) -> None:
        result = match_allowlist(["alice"], "u-2", "Alice")
        assert result.allowed is True
        assert result.match_source == "name"

    def test_rejects_unknown_sender(self) -> None:
        assert match_allowlist(["alice"], "u-3", "Mallory").allowed is False


class TestNestedDecision:
    @pytest.mark.parametrize(
        ("outer", "inner", "sender", "expected"),
        [
            ([], [], "a", False),
            (["a"], [], "a", True),
            (["a"], ["b"], "a", False),
            ([], ["b"], "b", True),
            (["a", "b"], ["b"], "b", True),
            ([], ["b"], "a", False),
        ],
    )
    def test_allowlist_policy(self, outer, inner, sender, expected) -> None:
        allowed = resolve_group_allow(
            group_policy=GroupPolicy.ALLOWLIST,
            outer_allow_from=outer,
            inner_allow_from=inner,
            sender_id=sender,
        )
        assert allowed is expected

    def test_open_policy_allows_with_empty_lists(self) -> None:
        assert resolve_group_allow(
            group_policy=GroupPolicy.OPEN,
            outer_allow_from=[],
            inner_allow_from=[],
            sender_id="x",
        )

    def test_disabled_policy_denies_listed_sender(self) -> None:
        assert not resolve_group_allow(
            group_policy=GroupPolicy.DISABLED,
            outer_allow_from=["x"],
            inner_allow_from=["x"],
            sender_id="x",
        )

    def test_unconfigured_outer_allows(self) -> None:
        assert resolve_nested_allowlist_decision(
            outer_configured=False,
            outer_matched=False,
            inner_configured=True,
            inner_matched=False,
        )
