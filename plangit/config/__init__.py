"""Configuration module for plangit."""

from .defaults import get_default_config
from .manager import ConfigManager, create_config_manager
from .providers import (
    ConfigProvider,
    LayeredConfigProvider,
    LocalFileConfigProvider,
)
from .schema import ConfigValidationError
from .settings import Settings, init_settings, settings

__all__ = [
    "settings",
    "Settings",
    "init_settings",
    "ConfigManager",
    "ConfigValidationError",
    "create_config_manager",
    "ConfigProvider",
    "LayeredConfigProvider",
    "LocalFileConfigProvider",
    "get_default_config",
]
