"""Repository façade and backend selection."""

from __future__ import annotations

import os
import shutil
from typing import Any

from plangit.config import Settings
from plangit.config import settings as default_settings
from plangit.config.constants import (
    ALLOWED_BACKENDS,
    BACKEND_EMBEDDED,
    BACKEND_EXTERNAL,
)
from plangit.git.backend import GitBackend
from plangit.git.embedded import EmbeddedBackend
from plangit.git.errors import UnsupportedRepositoryError
from plangit.git.external import ExternalBackend
from plangit.git.types import DiffStats, StatusEntry
from plangit.utils.logger import git_logger


class Repository:
    """One opened repository bound to exactly one backend for its lifetime.

    Call sites depend on this class only; which backend answers is decided
    once by ``open_repository``.
    """

    def __init__(self, backend: GitBackend):
        self._backend = backend

    def __repr__(self) -> str:
        return f"Repository({self.root()!r}, backend={self.backend_name!r})"

    @property
    def backend(self) -> GitBackend:
        return self._backend

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def root(self) -> str:
        return self._backend.root()

    def head_hash(self) -> str:
        return self._backend.head_hash()

    def has_commits(self) -> bool:
        return self._backend.has_commits()

    def current_branch(self) -> str:
        return self._backend.current_branch()

    def is_main_branch(self) -> bool:
        return self._backend.is_main_branch()

    def default_branch(self) -> str:
        return self._backend.default_branch()

    def branch_exists(self, name: str) -> bool:
        return self._backend.branch_exists(name)

    def create_branch(self, name: str) -> None:
        self._backend.create_branch(name)

    def checkout_branch(self, name: str) -> None:
        self._backend.checkout_branch(name)

    def status(self) -> list[StatusEntry]:
        return self._backend.status()

    def is_dirty(self) -> bool:
        return self._backend.is_dirty()

    def file_has_changes(self, path: str | os.PathLike[str]) -> bool:
        return self._backend.file_has_changes(path)

    def has_changes_other_than(self, path: str | os.PathLike[str]) -> bool:
        return self._backend.has_changes_other_than(path)

    def is_ignored(self, path: str | os.PathLike[str]) -> bool:
        return self._backend.is_ignored(path)

    def add(self, path: str | os.PathLike[str]) -> None:
        self._backend.add(path)

    def move_file(
        self, src: str | os.PathLike[str], dst: str | os.PathLike[str]
    ) -> None:
        self._backend.move_file(src, dst)

    def commit(self, message: str) -> None:
        self._backend.commit(message)

    def create_initial_commit(self, message: str) -> None:
        self._backend.create_initial_commit(message)

    def diff_stats(self, base: str) -> DiffStats:
        return self._backend.diff_stats(base)


def _backend_options(cfg: Settings) -> dict[str, Any]:
    return {
        "main_branches": cfg.main_branches,
        "default_branch_candidates": cfg.default_branch_candidates,
        "default_branch_fallback": cfg.default_branch_fallback,
    }


def open_repository(
    path: str | os.PathLike[str] = ".",
    backend: str | None = None,
    *,
    settings: Settings | None = None,
    **external_options: Any,
) -> Repository:
    """Open the repository containing ``path``.

    ``backend`` is "embedded", "external" or "auto" (default from the
    ``git_backend`` setting). "auto" uses the embedded backend and falls back
    to the git CLI only when dulwich rejects the repository format and git is
    on PATH. ``external_options`` (executable, timeout, cancel_event) are
    passed to the external backend.

    Raises:
        ValueError: Unknown backend name.
        InvalidRepositoryError: ``path`` is not inside a repository.
    """
    cfg = settings or default_settings
    choice = (backend or cfg.git_backend).strip().lower()
    if choice not in ALLOWED_BACKENDS:
        raise ValueError(
            f"Unsupported git backend '{choice}'. Allowed: {', '.join(ALLOWED_BACKENDS)}"
        )

    options = _backend_options(cfg)
    external_options.setdefault("executable", cfg.git_executable)
    external_options.setdefault("timeout", cfg.git_command_timeout)
    if choice == BACKEND_EMBEDDED:
        impl: GitBackend = EmbeddedBackend(path, **options)
    elif choice == BACKEND_EXTERNAL:
        impl = ExternalBackend(path, **options, **external_options)
    else:
        try:
            impl = EmbeddedBackend(path, **options)
        except UnsupportedRepositoryError as e:
            if shutil.which(external_options["executable"]) is None:
                raise
            git_logger.warning(
                "Embedded backend cannot read repository, using git CLI",
                path=os.fspath(path),
                reason=e.diagnostic or str(e),
            )
            impl = ExternalBackend(path, **options, **external_options)

    git_logger.debug(
        "Repository opened",
        root=impl.root(),
        backend=impl.name,
        requested=choice,
    )
    return Repository(impl)
