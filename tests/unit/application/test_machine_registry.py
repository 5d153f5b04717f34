"""Tests for MachineProfileRegistry."""

from chatgate.application.machine_registry import MachineProfileRegistry
from chatgate.core.domain.machine import RegisteredMachineProfile


def test_set_get_normalizes_account_id() -> None:
    registry = MachineProfileRegistry()
    profile = RegisteredMachineProfile(machine_id="host-1")

    registry.set(" Shop ", profile)

    assert registry.get("shop") is profile
    assert registry.get("other") is None


def test_last_writer_wins() -> None:
    registry = MachineProfileRegistry()
    registry.set("default", RegisteredMachineProfile(machine_id="host-1"))
    registry.set("default", RegisteredMachineProfile(machine_id="host-2"))
    assert registry.get("default").machine_id == "host-2"


def test_clear_and_set_none() -> None:
    registry = MachineProfileRegistry()
    registry.set("default", RegisteredMachineProfile(machine_id="host-1"))
    registry.clear("default")
    assert registry.get("default") is None

    registry.set("default", RegisteredMachineProfile(machine_id="host-1"))
    registry.set("default", None)
    assert registry.get("default") is None
