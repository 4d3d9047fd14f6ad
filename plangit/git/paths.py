"""Repository-relative path normalization shared by both backends."""

from __future__ import annotations

import os
from pathlib import Path

from plangit.git.errors import PathViolationError
from plangit.platforms import normalize_path


def resolve_root(path: str | os.PathLike[str]) -> str:
    """Return the symlink-resolved absolute form of a repository root."""
    return str(Path(path).expanduser().resolve())


def _escapes(rel: str) -> bool:
    return rel == os.pardir or rel.startswith(os.pardir + os.sep)


def to_relative(root: str, path: str | os.PathLike[str]) -> str:
    """Normalize ``path`` to a repository-relative, ``/``-separated path.

    Relative paths are cleaned and must not climb out of the root. Absolute
    paths get their parent directory resolved (so symlinked roots such as
    macOS ``/var`` -> ``/private/var`` still match) and are then made relative
    to the resolved root.

    Raises:
        PathViolationError: If the path resolves outside ``root``.
    """
    raw = os.fspath(path)
    if not raw:
        raise PathViolationError("empty path")

    if not os.path.isabs(raw):
        rel = os.path.normpath(raw)
        if _escapes(rel) or os.path.isabs(rel):
            raise PathViolationError(f"path {raw!r} is outside repository {root}")
        return "" if rel == os.curdir else normalize_path(rel)

    absolute = os.path.normpath(raw)
    parent, name = os.path.split(absolute)
    try:
        parent = str(Path(parent).resolve(strict=True))
    except (OSError, RuntimeError):
        # Parent may not exist yet (e.g. a move destination)
        pass
    candidate = os.path.join(parent, name) if name else parent

    try:
        rel = os.path.relpath(candidate, root)
    except ValueError as e:
        # Different drives on Windows
        raise PathViolationError(
            f"path {raw!r} is outside repository {root}", str(e)
        ) from e
    if _escapes(rel):
        raise PathViolationError(f"path {raw!r} is outside repository {root}")
    return "" if rel == os.curdir else normalize_path(rel)


def to_absolute(root: str, rel: str) -> str:
    """Join a repository-relative ``/`` path onto the root using OS separators."""
    return os.path.join(root, *rel.split("/")) if rel else root
