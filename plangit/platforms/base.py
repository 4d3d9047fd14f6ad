from __future__ import annotations

import os
import subprocess
from typing import Any, Protocol


class OSAdapter(Protocol):
    def english_locale_env(self, user_env: dict[str, str] | None) -> dict[str, str]: ...
    def process_group_kwargs(self) -> dict[str, Any]: ...
    def terminate_process(self, proc: Any) -> None: ...
    def wait_terminated(self, proc: subprocess.Popen, timeout: float = 5.0) -> None: ...
    def normalize_path(self, path: str) -> str:
        """Normalize path to use forward slashes (for git index/tree paths)."""
        ...


# Set by git hooks and wrappers; they would point a child git at another
# repository, index or object store than the one it runs in
REPOSITORY_ENV_KEYS = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_OBJECT_DIRECTORY",
    "GIT_ALTERNATE_OBJECT_DIRECTORIES",
    "GIT_COMMON_DIR",
    "GIT_NAMESPACE",
    "GIT_CEILING_DIRECTORIES",
)


class BaseOSAdapter:
    def english_locale_env(self, user_env: dict[str, str] | None) -> dict[str, str]:
        raise NotImplementedError

    def inherited_env(self) -> dict[str, str]:
        """Copy of the current environment without repository overrides."""
        env = os.environ.copy()
        for key in REPOSITORY_ENV_KEYS:
            env.pop(key, None)
        return env

    def process_group_kwargs(self) -> dict[str, Any]:
        """Extra Popen kwargs that put the child in its own process group.

        Subclasses should override for platform-specific behavior.
        """
        return {}

    def terminate_process(self, proc: Any) -> None:
        """Terminate a running process tree appropriately for the platform.

        Subclasses should override; the default kills the direct child only.
        """
        try:
            proc.kill()
        except ProcessLookupError:
            pass

    def wait_terminated(self, proc: subprocess.Popen, timeout: float = 5.0) -> None:
        """Reap a terminated child so it does not linger as a zombie."""
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    def normalize_path(self, path: str) -> str:
        """Normalize path to use forward slashes (for git index/tree paths).

        Default implementation: no transformation (POSIX-like systems).
        Windows adapter should override to replace backslashes.
        """
        return path
