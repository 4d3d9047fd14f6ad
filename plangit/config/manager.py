"""Configuration manager."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from plangit.config.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_CONFIG_DIR_ENV,
    DEFAULT_GLOBAL_CONFIG_DIR,
    LOCAL_STATE_DIR,
)
from plangit.config.defaults import get_default_config
from plangit.config.providers import (
    ConfigProvider,
    LayeredConfigProvider,
    LocalFileConfigProvider,
)
from plangit.config.schema import validate_config
from plangit.utils.logger import get_logger

logger = get_logger("plangit.config.manager")


class ConfigManager:
    """Manages application configuration.

    Loads once from its provider and serves reads from the validated,
    merged view.
    """

    def __init__(self, provider: ConfigProvider):
        self.provider = provider
        self._config: dict[str, Any] = {}
        self._loaded = False

    def initialize(self) -> None:
        """Load and validate the initial configuration.

        Raises:
            ConfigValidationError: If the merged configuration is invalid.
        """
        self._config = validate_config(self.provider.load())
        self._loaded = True
        logger.debug("Configuration initialized", config_keys=list(self._config.keys()))

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key."""
        return self._config.get(key, default)


def default_global_config_dir() -> Path:
    """Return the global config directory (PLANGIT_CONFIG_DIR or ~/.config/plangit)."""
    return Path(
        os.getenv(DEFAULT_CONFIG_DIR_ENV) or DEFAULT_GLOBAL_CONFIG_DIR
    ).expanduser()


def local_config_path(repo_root: str | Path) -> Path:
    """Return the project-scoped config file path for a repository root."""
    return Path(repo_root) / LOCAL_STATE_DIR / CONFIG_FILE_NAME


def create_config_manager(
    global_config_dir: Path | None = None,
    *,
    local_config_path: Path | None = None,
    defaults: dict[str, Any] | None = None,
) -> ConfigManager:
    """Create and initialize a config manager.

    Args:
        global_config_dir: Directory holding the global config.json
            (defaults to PLANGIT_CONFIG_DIR or ~/.config/plangit)
        local_config_path: Optional project-scoped config.json for overrides
        defaults: Default configuration values
    """
    config_dir = global_config_dir or default_global_config_dir()
    config_path = config_dir / CONFIG_FILE_NAME
    base_provider = LocalFileConfigProvider(
        config_path,
        defaults=defaults if defaults is not None else get_default_config(),
    )
    providers: list[ConfigProvider] = [base_provider]
    if local_config_path:
        providers.append(LocalFileConfigProvider(local_config_path, defaults={}))

    if len(providers) == 1:
        provider: ConfigProvider = base_provider
    else:
        provider = LayeredConfigProvider(providers)
    manager = ConfigManager(provider)
    manager.initialize()

    logger.debug("Config manager created", config_path=str(config_path))
    return manager
