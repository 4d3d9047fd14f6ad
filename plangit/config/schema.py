from __future__ import annotations

from copy import deepcopy
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from plangit.config.constants import (
    ALLOWED_BACKENDS,
    BACKEND_AUTO,
    COMPLETED_DIR_NAME,
    DEFAULT_BRANCH_CANDIDATES,
    DEFAULT_BRANCH_FALLBACK,
    DEFAULT_MAIN_BRANCHES,
)


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge updates into base without mutating inputs.

    - Keys present in updates with non-None values are merged/overwritten
    - Keys present in updates with None values are skipped (preserve base value)
    - Keys not present in updates are preserved from base
    """
    result = deepcopy(base)
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        elif key in result and value is None:
            # Treat None as "not provided" so lower layers keep their values
            continue
        else:
            result[key] = value
    return result


class AppConfig(BaseModel):
    git_backend: str = BACKEND_AUTO
    git_executable: str = "git"
    git_command_timeout: float | None = None

    main_branches: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MAIN_BRANCHES)
    )
    default_branch_candidates: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BRANCH_CANDIDATES)
    )
    default_branch_fallback: str = DEFAULT_BRANCH_FALLBACK

    completed_dir: str = COMPLETED_DIR_NAME
    progress_ignore_pattern: str = "progress*.txt"

    log_level: str = "INFO"
    log_format: Literal["pretty", "json"] = "pretty"
    log_colors: bool = True

    model_config = ConfigDict(extra="ignore")

    @field_validator("git_backend")
    @classmethod
    def check_backend(cls, value: str) -> str:
        if value not in ALLOWED_BACKENDS:
            raise ValueError(
                f"Unsupported git backend '{value}'. "
                f"Allowed: {', '.join(ALLOWED_BACKENDS)}"
            )
        return value

    @field_validator("git_command_timeout")
    @classmethod
    def check_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("git_command_timeout must be positive")
        return value

    @field_validator("main_branches")
    @classmethod
    def check_main_branches(cls, value: list[str]) -> list[str]:
        if not [name for name in value if name.strip()]:
            raise ValueError("main_branches must name at least one branch")
        return value

    @field_validator("completed_dir", "default_branch_fallback", "git_executable")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("value must not be empty")
        return value


class ConfigValidationError(Exception):
    """Structured configuration validation error."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration using Pydantic schema.

    Raises:
        ConfigValidationError: With structured list of human-readable error messages.
    """
    try:
        app_config = AppConfig.model_validate(config)
        return app_config.model_dump(mode="json")
    except ValidationError as e:
        errors = _extract_validation_errors(e)
        raise ConfigValidationError(errors) from e


def _extract_validation_errors(exc: ValidationError) -> list[str]:
    """Convert Pydantic ValidationError to list of human-readable messages."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err["loc"]) if err["loc"] else "config"
        msg = err["msg"]

        # Strip Pydantic's "Value error, " prefix from our custom messages
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]

        if err["type"] == "value_error":
            errors.append(f"{loc}: {msg}")
        elif err["type"] == "missing":
            errors.append(f"Missing required field: {loc}")
        elif err["type"] == "string_type":
            errors.append(f"Expected string at '{loc}'")
        elif err["type"] == "bool_type":
            errors.append(f"Expected boolean at '{loc}'")
        elif err["type"] == "list_type":
            errors.append(f"Expected list at '{loc}'")
        else:
            # Generic fallback - still human readable
            errors.append(f"{loc}: {msg}")

    return errors if errors else ["Invalid configuration"]
