"""
Channel configuration loading.

Reads the YAML configuration document and validates it into an
``AppConfig`` once, at load time. Invalid documents raise ``ConfigError``
with the file path in ``details``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiofiles
import structlog
import yaml

from chatgate.core.domain.config_schema import AppConfig, validate_app_config
from chatgate.core.domain.errors import ConfigError

logger = structlog.get_logger(__name__)


class ChannelConfigLoader:
    """Loads channel configuration from a YAML file.

    Provides both synchronous and asynchronous loading.

    Args:
        config_path: Path to the YAML configuration file.

    Raises:
        ConfigError: If the config file does not exist.
    """

    def __init__(self, config_path: str | Path) -> None:
        self._config_path = Path(config_path).expanduser()
        if not self._config_path.exists():
            raise ConfigError(
                f"Channel config not found: {config_path}",
                details={"file_path": str(config_path)},
            )
        self._config: AppConfig | None = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def config(self) -> AppConfig | None:
        """The last loaded configuration, if any."""
        return self._config

    def load(self) -> AppConfig:
        with open(self._config_path, encoding="utf-8") as f:
            raw = f.read()
        return self._apply(raw)

    async def load_async(self) -> AppConfig:
        """Load without blocking the event loop."""
        async with aiofiles.open(self._config_path, encoding="utf-8") as f:
            raw = await f.read()
        return self._apply(raw)

    def _apply(self, raw: str) -> AppConfig:
        data = self._parse(raw)
        config = validate_app_config(data, self._config_path)
        self._config = config
        logger.info(
            "channel_config.loaded",
            file_path=str(self._config_path),
            accounts=sorted(config.channels.vimalinx.accounts),
        )
        return config

    def _parse(self, raw: str) -> dict[str, Any] | None:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Invalid YAML: {exc}",
                details={"file_path": str(self._config_path)},
            ) from exc
        if data is not None and not isinstance(data, dict):
            raise ConfigError(
                "Config root must be a mapping",
                details={"file_path": str(self._config_path)},
            )
        return data


def load_channel_config(config_path: str | Path) -> AppConfig:
    return ChannelConfigLoader(config_path).load()
