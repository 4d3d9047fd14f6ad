from __future__ import annotations

import subprocess
from typing import Any

from .base import BaseOSAdapter

# Locale defaults for Windows-friendly English output
WINDOWS_LOCALE_DEFAULTS = {
    # Git for Windows is an MSYS build and honours these
    "LC_ALL": "C",
    "LC_MESSAGES": "C",
    "LANG": "C",
    # For native Windows apps, these have limited effect; kept for consistency
    "LANGUAGE": "en_US:en",
}


class WindowsAdapter(BaseOSAdapter):
    def english_locale_env(self, user_env: dict[str, str] | None) -> dict[str, str]:
        base = self.inherited_env()
        base.update(WINDOWS_LOCALE_DEFAULTS)
        if user_env:
            base.update({str(k): str(v) for k, v in user_env.items()})
        return base

    def process_group_kwargs(self) -> dict[str, Any]:
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}

    def normalize_path(self, path: str) -> str:
        """Normalize Windows path to use forward slashes.

        Git stores tree and index paths with forward slashes regardless of OS.
        """
        return path.replace("\\", "/")
