"""Process-wide registry of registered machine profiles, keyed by account."""

from __future__ import annotations

import threading

from chatgate.core.domain.config_schema import normalize_account_id
from chatgate.core.domain.machine import RegisteredMachineProfile


class MachineProfileRegistry:
    """Holds the latest machine profile per account.

    Writes are last-writer-wins; ``set(account_id, None)`` is the same as
    ``clear``.
    """

    def __init__(self) -> None:
        self._profiles: dict[str, RegisteredMachineProfile] = {}
        self._lock = threading.Lock()

    def set(self, account_id: str, profile: RegisteredMachineProfile | None) -> None:
        key = normalize_account_id(account_id)
        with self._lock:
            if profile is None:
                self._profiles.pop(key, None)
            else:
                self._profiles[key] = profile

    def get(self, account_id: str) -> RegisteredMachineProfile | None:
        with self._lock:
            return self._profiles.get(normalize_account_id(account_id))

    def clear(self, account_id: str) -> None:
        self.set(account_id, None)
