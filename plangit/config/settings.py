"""Configuration settings for plangit.

This module provides a Settings class that wraps the ConfigManager,
providing property-based access to configuration values with environment
variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from plangit.config.constants import (
    ALLOWED_BACKENDS,
    BACKEND_AUTO,
    COMPLETED_DIR_NAME,
    DEFAULT_BRANCH_CANDIDATES,
    DEFAULT_BRANCH_FALLBACK,
    DEFAULT_MAIN_BRANCHES,
)
from plangit.config.manager import (
    ConfigManager,
    create_config_manager,
    local_config_path,
)
from plangit.utils.logger import configure_structlog


class Settings:
    """Application settings.

    Keys with an environment override read it first, then the attached
    ConfigManager, then hard-coded defaults.
    """

    def __init__(self, config_manager: ConfigManager | None = None):
        self._config_manager = config_manager

    def _get(
        self,
        key: str,
        default: Any,
        env_key: str | None = None,
    ) -> Any:
        """Get config value from env override, then manager, then default."""
        # Explicit environment overrides win for the keys that declare one
        if env_key and (env_val := os.getenv(env_key)):
            # Type conversion based on default type
            if isinstance(default, bool):
                return env_val.lower() in ("true", "1", "yes", "on")
            elif isinstance(default, int):
                return int(env_val)
            elif isinstance(default, float) or key == "git_command_timeout":
                return float(env_val)
            return env_val
        if self._config_manager:
            value = self._config_manager.get(key, default)
            return default if value is None else value
        return default

    # Git backend
    @property
    def git_backend(self) -> str:
        value = str(self._get("git_backend", BACKEND_AUTO, "PLANGIT_GIT_BACKEND"))
        value = value.strip().lower()
        if value not in ALLOWED_BACKENDS:
            raise ValueError(
                f"Unsupported git backend '{value}'. "
                f"Allowed: {', '.join(ALLOWED_BACKENDS)}"
            )
        return value

    @property
    def git_executable(self) -> str:
        return self._get("git_executable", "git", "PLANGIT_GIT_EXECUTABLE")

    @property
    def git_command_timeout(self) -> float | None:
        return self._get("git_command_timeout", None, "PLANGIT_GIT_TIMEOUT")

    # Branch conventions
    @property
    def main_branches(self) -> tuple[str, ...]:
        return tuple(self._get("main_branches", list(DEFAULT_MAIN_BRANCHES)))

    @property
    def default_branch_candidates(self) -> tuple[str, ...]:
        return tuple(
            self._get("default_branch_candidates", list(DEFAULT_BRANCH_CANDIDATES))
        )

    @property
    def default_branch_fallback(self) -> str:
        return self._get("default_branch_fallback", DEFAULT_BRANCH_FALLBACK)

    # Plan lifecycle
    @property
    def completed_dir(self) -> str:
        return self._get("completed_dir", COMPLETED_DIR_NAME)

    @property
    def progress_ignore_pattern(self) -> str:
        return self._get("progress_ignore_pattern", "progress*.txt")

    # Logging Configuration
    @property
    def log_level(self) -> str:
        return self._get("log_level", "INFO", "LOG_LEVEL")

    @property
    def log_format(self) -> str:
        return self._get("log_format", "pretty", "LOG_FORMAT")

    @property
    def log_colors(self) -> bool:
        return self._get("log_colors", True, "LOG_COLORS")


# Global settings instance (will be initialized with config manager)
settings = Settings()


def init_settings(
    repo_root: str | os.PathLike[str] | None = None,
    *,
    global_config_dir: Path | None = None,
) -> Settings:
    """Load global (and, given ``repo_root``, project-local) config into ``settings``."""
    manager = create_config_manager(
        global_config_dir,
        local_config_path=local_config_path(repo_root) if repo_root else None,
    )
    settings._config_manager = manager
    configure_structlog(
        settings.log_format, settings.log_colors, settings.log_level
    )
    return settings
