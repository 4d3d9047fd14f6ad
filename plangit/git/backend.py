"""Backend contract shared by the embedded (dulwich) and external (git CLI) backends.

The abstract class holds every policy that does not depend on how the
repository is accessed: default-branch and base-ref fallback chains, the
diff-stats template and the status-based change queries. Subclasses provide
the primitives (refs, commits, status, staging).
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Iterable

from plangit.config import settings
from plangit.config.constants import REMOTE_NAME
from plangit.git.paths import to_relative
from plangit.git.types import DiffStats, StatusEntry
from plangit.utils.logger import git_logger

LOCAL_BRANCH_PREFIX = "refs/heads/"
REMOTE_BRANCH_PREFIX = "refs/remotes/"
REMOTE_HEAD_REF = f"{REMOTE_BRANCH_PREFIX}{REMOTE_NAME}/HEAD"


class GitBackend(ABC):
    """Version-control capability set bound to one repository root."""

    name: str = "abstract"

    def __init__(
        self,
        root: str,
        *,
        main_branches: Iterable[str] | None = None,
        default_branch_candidates: Iterable[str] | None = None,
        default_branch_fallback: str | None = None,
    ):
        self._root = root
        self._main_branches = tuple(
            main_branches if main_branches is not None else settings.main_branches
        )
        self._default_branch_candidates = tuple(
            default_branch_candidates
            if default_branch_candidates is not None
            else settings.default_branch_candidates
        )
        self._default_branch_fallback = (
            default_branch_fallback or settings.default_branch_fallback
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._root!r})"

    def root(self) -> str:
        """Symlink-resolved absolute path of the working tree root."""
        return self._root

    def relative(self, path: str | os.PathLike[str]) -> str:
        """Normalize a caller path to a repository-relative ``/`` path."""
        return to_relative(self._root, path)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _ref_exists(self, refname: str) -> bool:
        """Whether a fully qualified ref resolves to an object."""

    @abstractmethod
    def _symbolic_ref(self, refname: str) -> str | None:
        """Target of a symbolic ref, or None when missing or not symbolic."""

    @abstractmethod
    def _resolve_commit(self, refname: str) -> str | None:
        """Commit sha a ref peels to, or None when unresolvable."""

    @abstractmethod
    def _diff_commits(self, base_sha: str, head_sha: str) -> DiffStats:
        """Numstat-equivalent totals from merge-base(base, head) to head."""

    @abstractmethod
    def status(self) -> list[StatusEntry]:
        """Non-ignored working tree status, untracked files listed individually."""

    # ------------------------------------------------------------------
    # HEAD and branches
    # ------------------------------------------------------------------

    @abstractmethod
    def head_hash(self) -> str:
        """40-character hex sha of HEAD.

        Raises:
            ReferenceNotFoundError: Repository has no commits yet.
            CommandFailureError: HEAD cannot be read for any other reason.
        """

    @abstractmethod
    def has_commits(self) -> bool:
        """False for an unborn HEAD; raises CommandFailureError on corruption."""

    @abstractmethod
    def current_branch(self) -> str:
        """Short name of the checked-out branch, "" when HEAD is detached."""

    def is_main_branch(self) -> bool:
        return self.current_branch() in self._main_branches

    def default_branch(self) -> str:
        """Best guess at the repository's primary branch. Never raises."""
        target = self._symbolic_ref(REMOTE_HEAD_REF)
        prefix = f"{REMOTE_BRANCH_PREFIX}{REMOTE_NAME}/"
        if target and target.startswith(prefix):
            branch = target[len(prefix) :]
            if self._ref_exists(LOCAL_BRANCH_PREFIX + branch):
                return branch
            return f"{REMOTE_NAME}/{branch}"

        for candidate in self._default_branch_candidates:
            if self._ref_exists(LOCAL_BRANCH_PREFIX + candidate):
                return candidate
        return self._default_branch_fallback

    def branch_exists(self, name: str) -> bool:
        return self._ref_exists(LOCAL_BRANCH_PREFIX + name)

    @abstractmethod
    def create_branch(self, name: str) -> None:
        """Create ``name`` at HEAD and switch to it."""

    @abstractmethod
    def checkout_branch(self, name: str) -> None:
        """Switch to an existing local branch."""

    # ------------------------------------------------------------------
    # Working tree queries
    # ------------------------------------------------------------------

    def is_dirty(self) -> bool:
        """Tracked files modified, staged or deleted. Untracked files never count."""
        return any(entry.is_tracked_change for entry in self.status())

    def file_has_changes(self, path: str | os.PathLike[str]) -> bool:
        rel = self.relative(path)
        return any(_matches(entry, rel) for entry in self.status())

    def has_changes_other_than(self, path: str | os.PathLike[str]) -> bool:
        rel = self.relative(path)
        return any(entry.path != rel for entry in self.status())

    @abstractmethod
    def is_ignored(self, path: str | os.PathLike[str]) -> bool:
        """Whether git ignore rules exclude ``path``. Tracked files are never ignored."""

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @abstractmethod
    def add(self, path: str | os.PathLike[str]) -> None: ...

    @abstractmethod
    def move_file(
        self, src: str | os.PathLike[str], dst: str | os.PathLike[str]
    ) -> None: ...

    @abstractmethod
    def commit(self, message: str) -> None: ...

    @abstractmethod
    def create_initial_commit(self, message: str) -> None: ...

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def base_ref_candidates(self, base: str) -> tuple[str, ...]:
        """Ordered refs tried when resolving a diff base name."""
        candidates = [
            LOCAL_BRANCH_PREFIX + base,
            f"{REMOTE_BRANCH_PREFIX}{REMOTE_NAME}/{base}",
        ]
        if base.startswith(f"{REMOTE_NAME}/"):
            candidates.append(REMOTE_BRANCH_PREFIX + base)
        return tuple(candidates)

    def resolve_base_ref(self, base: str) -> str | None:
        for candidate in self.base_ref_candidates(base):
            if self._ref_exists(candidate):
                return candidate
        return None

    def diff_stats(self, base: str) -> DiffStats:
        """Changes from merge-base(base, HEAD) to HEAD.

        Returns the zero value when HEAD has no commit, ``base`` resolves to
        nothing, or ``base`` is the same commit as HEAD.
        """
        if not self.has_commits():
            return DiffStats()
        ref = self.resolve_base_ref(base)
        if ref is None:
            git_logger.debug("Diff base not found", base=base, backend=self.name)
            return DiffStats()
        base_sha = self._resolve_commit(ref)
        head_sha = self.head_hash()
        if base_sha is None or base_sha == head_sha:
            return DiffStats()
        return self._diff_commits(base_sha, head_sha)


def _matches(entry: StatusEntry, rel: str) -> bool:
    if not rel:
        return True
    return entry.path == rel or entry.path.startswith(rel.rstrip("/") + "/")
