"""Configuration module for the relay bridge."""

from .settings import (
    settings, get_settings, Settings, BridgeConfig, IrcOptions,
    build_bridge_config, load_bridge_configs
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "BridgeConfig",
    "IrcOptions",
    "build_bridge_config",
    "load_bridge_configs"
]
