from __future__ import annotations

from .base import OSAdapter
from .posix import PosixAdapter
from .windows import WindowsAdapter


def get_os_adapter() -> OSAdapter:
    """Return an OS-specific adapter instance.

    - Windows: WindowsAdapter
    - Others (Linux/macOS/BSD): PosixAdapter
    """
    import os

    if os.name == "nt":
        return WindowsAdapter()
    return PosixAdapter()


# Global adapter instance for convenience
_adapter = get_os_adapter()


def normalize_path(path: str) -> str:
    """Normalize path to use forward slashes (for git index/tree paths).

    On Windows: converts backslashes to forward slashes
    On POSIX: returns path as-is
    """
    return _adapter.normalize_path(path)


def english_locale_env(user_env: dict[str, str] | None = None) -> dict[str, str]:
    """Current environment with a fixed C/English locale.

    Variables that redirect git to another repository or index are dropped.
    """
    return _adapter.english_locale_env(user_env)


__all__ = [
    "OSAdapter",
    "PosixAdapter",
    "WindowsAdapter",
    "get_os_adapter",
    "normalize_path",
    "english_locale_env",
]
