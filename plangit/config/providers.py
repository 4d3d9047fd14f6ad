"""Configuration providers - abstract and concrete implementations."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from plangit.config.schema import deep_merge
from plangit.utils.logger import get_logger

logger = get_logger("plangit.config.providers")


class ConfigProvider(ABC):
    """Abstract base class for configuration providers."""

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration from the provider."""
        pass


class LocalFileConfigProvider(ConfigProvider):
    """Configuration provider that reads config from a local JSON file."""

    def __init__(self, config_path: Path, defaults: dict[str, Any] | None = None):
        self.config_path = config_path
        self.defaults = defaults or {}
        self._last_valid_config: dict[str, Any] | None = None

    def load(self) -> dict[str, Any]:
        """Load configuration from file, merged over defaults."""
        if not self.config_path.exists():
            logger.debug(
                "Config file not found, using defaults",
                path=str(self.config_path),
            )
            merged = self.defaults.copy()
            self._last_valid_config = merged.copy()
            return merged

        try:
            content = self.config_path.read_text(encoding="utf-8")
            config = json.loads(content)
            if not isinstance(config, dict):
                raise ValueError("top-level JSON value must be an object")

            merged = deep_merge(self.defaults, config)
            self._last_valid_config = merged.copy()

            logger.debug("Config loaded from file", path=str(self.config_path))
            return merged
        except json.JSONDecodeError as e:
            logger.error(
                "Invalid JSON syntax in config file",
                error=str(e),
                line=e.lineno,
                column=e.colno,
                path=str(self.config_path),
            )
            return self._fallback()
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to load config",
                error=str(e),
                path=str(self.config_path),
            )
            return self._fallback()

    def _fallback(self) -> dict[str, Any]:
        # Return last valid config if available, otherwise defaults
        if self._last_valid_config is not None:
            logger.warning(
                "Using last valid configuration", path=str(self.config_path)
            )
            return self._last_valid_config.copy()
        logger.warning(
            "No previous valid config, using defaults", path=str(self.config_path)
        )
        return self.defaults.copy()


class LayeredConfigProvider(ConfigProvider):
    """Configuration provider that merges multiple config sources.

    Each layer is a ConfigProvider implementation ordered from lowest to highest
    precedence (global user config first, project-local overrides last).
    """

    def __init__(self, providers: list[ConfigProvider]):
        if not providers:
            raise ValueError("LayeredConfigProvider requires at least one provider")

        self.providers = providers
        self._layer_configs: list[dict[str, Any]] = [{} for _ in providers]

    def _merge(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for cfg in self._layer_configs:
            merged = deep_merge(merged, cfg)
        return merged

    def load(self) -> dict[str, Any]:
        for idx, provider in enumerate(self.providers):
            self._layer_configs[idx] = provider.load()
        return self._merge()
