"""Configuration loading."""

from chatgate.infrastructure.config.channel_config_loader import (
    ChannelConfigLoader,
    load_channel_config,
)

__all__ = ["ChannelConfigLoader", "load_channel_config"]
