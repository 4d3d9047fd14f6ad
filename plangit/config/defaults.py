"""Default configuration values for plangit."""

from typing import Any

from plangit.config.constants import (
    BACKEND_AUTO,
    COMPLETED_DIR_NAME,
    DEFAULT_BRANCH_CANDIDATES,
    DEFAULT_BRANCH_FALLBACK,
    DEFAULT_MAIN_BRANCHES,
)


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    return {
        # Backend selection: "embedded" (dulwich), "external" (git CLI) or
        # "auto" (embedded, falling back to git for unsupported repo formats)
        "git_backend": BACKEND_AUTO,
        "git_executable": "git",
        # Seconds; None waits for git indefinitely
        "git_command_timeout": None,
        # Branch conventions
        "main_branches": list(DEFAULT_MAIN_BRANCHES),
        "default_branch_candidates": list(DEFAULT_BRANCH_CANDIDATES),
        "default_branch_fallback": DEFAULT_BRANCH_FALLBACK,
        # Plan lifecycle
        "completed_dir": COMPLETED_DIR_NAME,
        "progress_ignore_pattern": "progress*.txt",
        # Logging Configuration
        "log_level": "INFO",
        "log_format": "pretty",
        "log_colors": True,
    }
