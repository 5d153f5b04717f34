"""Detection of slash-style control commands in message text."""

from __future__ import annotations

import re
from typing import Iterable

from chatgate.core.domain.config_schema import CommandsConfig

# "/cmd", "/cmd@botname", "/cmd:" optionally followed by arguments.
_COMMAND_RE = re.compile(r"^/([a-z][a-z0-9_-]*)(?:@[\w.-]+)?:?(?:\s|$)", re.IGNORECASE)


class TextCommandDetector:
    """Recognizes known control commands such as ``/status`` or ``/reset``."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        control_commands: Iterable[str] = (),
        disabled_surfaces: Iterable[str] = (),
    ) -> None:
        self._enabled = enabled
        self._commands = {entry.strip().lstrip("/").lower() for entry in control_commands if entry}
        self._disabled_surfaces = {entry.strip().lower() for entry in disabled_surfaces if entry}

    @classmethod
    def from_config(cls, config: CommandsConfig) -> "TextCommandDetector":
        return cls(
            enabled=config.text,
            control_commands=config.control_commands,
            disabled_surfaces=config.disabled_surfaces,
        )

    def should_handle_text_commands(self, surface: str) -> bool:
        if not self._enabled:
            return False
        return surface.strip().lower() not in self._disabled_surfaces

    def has_control_command(self, text: str) -> bool:
        match = _COMMAND_RE.match((text or "").strip())
        if not match:
            return False
        return match.group(1).lower() in self._commands
