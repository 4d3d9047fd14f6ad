"""Plan file naming conventions."""

from __future__ import annotations

import os
import re

from plangit.config import settings

PLAN_EXTENSION = ".md"
# Date-stamp convention: 2024-01-15-my-feature.md
DATE_PREFIX_RE = re.compile(r"^[\d-]+")


def extract_branch_name(plan_file: str | os.PathLike[str]) -> str:
    """Derive a branch name from a plan file path.

    The base name loses its ``.md`` extension and any leading date-stamp
    prefix (digits and dashes). If nothing is left, the stem is used as-is:
    ``2024-01-15-my-feature.md`` -> ``my-feature``, ``2024-01-15-.md`` ->
    ``2024-01-15-``.
    """
    name = os.path.basename(os.fspath(plan_file))
    if name.endswith(PLAN_EXTENSION):
        name = name[: -len(PLAN_EXTENSION)]
    branch = DATE_PREFIX_RE.sub("", name).lstrip("-")
    return branch or name


def completed_dir(plan_file: str | os.PathLike[str]) -> str:
    """Directory finished plans are moved into, next to the plan itself."""
    return os.path.join(
        os.path.dirname(os.fspath(plan_file)), settings.completed_dir
    )


def completed_path(plan_file: str | os.PathLike[str]) -> str:
    """Destination of ``plan_file`` once it has been completed."""
    return os.path.join(
        completed_dir(plan_file), os.path.basename(os.fspath(plan_file))
    )
