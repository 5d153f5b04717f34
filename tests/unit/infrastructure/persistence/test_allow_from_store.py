"""Tests for the allow-from / pairing stores."""

from __future__ import annotations

import asyncio
import json

import pytest

from chatgate.core.domain.errors import PairingError
from chatgate.infrastructure.persistence.allow_from_store import (
    PAIRING_CODE_ALPHABET,
    PAIRING_CODE_LENGTH,
    PAIRING_PENDING_TTL_MS,
    FileAllowFromStore,
    InMemoryAllowFromStore,
    generate_pairing_code,
)


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_generated_codes_use_unambiguous_alphabet() -> None:
    code = generate_pairing_code()
    assert len(code) == PAIRING_CODE_LENGTH
    assert set(code) <= set(PAIRING_CODE_ALPHABET)
    assert not set(code) & set("01IO")


@pytest.mark.asyncio
async def test_first_request_is_created_then_reused(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))

    first = await store.upsert_pairing_request("vimalinx", "u-1", {"name": "Alice"})
    second = await store.upsert_pairing_request("vimalinx", "u-1")

    assert first.created is True
    assert second.created is False
    assert second.code == first.code


@pytest.mark.asyncio
async def test_concurrent_upserts_create_exactly_once(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))

    results = await asyncio.gather(
        *(store.upsert_pairing_request("vimalinx", "u-1") for _ in range(5))
    )

    assert sum(1 for result in results if result.created) == 1
    assert len({result.code for result in results}) == 1


@pytest.mark.asyncio
async def test_approve_moves_sender_to_allow_list(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))
    request = await store.upsert_pairing_request("vimalinx", "U-1")

    approved = await store.approve("vimalinx", request.code.lower())

    assert approved == "u-1"
    assert await store.read_allow_from("vimalinx") == ["u-1"]
    assert await store.list_requests("vimalinx") == []
    assert await store.approve("vimalinx", request.code) is None


@pytest.mark.asyncio
async def test_state_persists_across_instances(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))
    request = await store.upsert_pairing_request("vimalinx", "u-1")
    await store.approve("vimalinx", request.code)

    reopened = FileAllowFromStore(work_dir=str(tmp_path))
    assert await reopened.read_allow_from("vimalinx") == ["u-1"]

    payload = json.loads((tmp_path / "pairing" / "vimalinx.json").read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert payload["allow_from"] == ["u-1"]


@pytest.mark.asyncio
async def test_pending_requests_expire(tmp_path) -> None:
    clock = FakeClock()
    store = FileAllowFromStore(work_dir=str(tmp_path), clock=clock)
    first = await store.upsert_pairing_request("vimalinx", "u-1")

    clock.now += PAIRING_PENDING_TTL_MS
    again = await store.upsert_pairing_request("vimalinx", "u-1")

    assert again.created is True
    assert len(await store.list_requests("vimalinx")) == 1


@pytest.mark.asyncio
async def test_pending_limit_raises_pairing_error(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))
    for sender in ("a", "b", "c"):
        await store.upsert_pairing_request("vimalinx", sender)

    with pytest.raises(PairingError) as exc_info:
        await store.upsert_pairing_request("vimalinx", "d")

    assert exc_info.value.details["channel"] == "vimalinx"
    # Already-pending senders still get their code back.
    assert (await store.upsert_pairing_request("vimalinx", "a")).created is False


@pytest.mark.asyncio
async def test_missing_file_reads_empty(tmp_path) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))
    assert await store.read_allow_from("vimalinx") == []


@pytest.mark.asyncio
async def test_in_memory_store_matches_file_semantics() -> None:
    store = InMemoryAllowFromStore({"vimalinx": ["Vimalinx:Alice"]})
    assert await store.read_allow_from("vimalinx") == ["alice"]

    request = await store.upsert_pairing_request("vimalinx", "bob")
    assert request.created is True
    assert (await store.upsert_pairing_request("vimalinx", "bob")).created is False
    assert await store.approve("vimalinx", request.code) == "bob"
    assert await store.read_allow_from("vimalinx") == ["alice", "bob"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    ["[1, 2, 3]", '"text"', '{"allow_from": "u-1", "requests": {"id": "u-1"}}', "{not json"],
)
async def test_malformed_file_is_read_as_empty(tmp_path, content) -> None:
    store = FileAllowFromStore(work_dir=str(tmp_path))
    (tmp_path / "pairing" / "vimalinx.json").write_text(content, encoding="utf-8")

    assert await store.read_allow_from("vimalinx") == []
    request = await store.upsert_pairing_request("vimalinx", "u-1")
    assert request.created is True
