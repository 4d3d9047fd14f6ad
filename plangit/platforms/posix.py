from __future__ import annotations

import os
import signal
from typing import Any

from .base import BaseOSAdapter

# Locale defaults for POSIX to force English
POSIX_LOCALE_DEFAULTS = {
    "LC_ALL": "C",
    "LC_MESSAGES": "C",
    "LANG": "C",
    "LANGUAGE": "en_US:en",
}


class PosixAdapter(BaseOSAdapter):
    def english_locale_env(self, user_env: dict[str, str] | None) -> dict[str, str]:
        base = self.inherited_env()
        base.update(POSIX_LOCALE_DEFAULTS)
        if user_env:
            base.update({str(k): str(v) for k, v in user_env.items()})
        return base

    def process_group_kwargs(self) -> dict[str, Any]:
        # New session so the whole group can be killed on cancellation
        return {"start_new_session": True}

    def terminate_process(self, proc: Any) -> None:
        # Kill the whole process group if possible
        if getattr(proc, "pid", None):
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except (ProcessLookupError, PermissionError):
                pass
        super().terminate_process(proc)
