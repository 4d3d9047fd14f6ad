from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DiffStats:
    """Files touched and lines added/deleted between two commits.

    The zero value means no difference or an unresolvable base reference.
    """

    files: int = 0
    additions: int = 0
    deletions: int = 0

    def __add__(self, other: DiffStats) -> DiffStats:
        return DiffStats(
            files=self.files + other.files,
            additions=self.additions + other.additions,
            deletions=self.deletions + other.deletions,
        )

    def __bool__(self) -> bool:
        return bool(self.files or self.additions or self.deletions)


@dataclass(frozen=True)
class StatusEntry:
    """One working-tree status record in porcelain terms.

    ``code`` is the two-character XY code ("??" for untracked, "!!" for ignored),
    ``path`` the post-rename repository-relative path, ``orig_path`` the
    pre-rename path for renames and copies.
    """

    code: str
    path: str
    orig_path: str | None = None

    @property
    def index_status(self) -> str:
        return self.code[0]

    @property
    def worktree_status(self) -> str:
        return self.code[1]

    @property
    def is_untracked(self) -> bool:
        return self.code == "??"

    @property
    def is_ignored(self) -> bool:
        return self.code == "!!"

    @property
    def is_tracked_change(self) -> bool:
        return not (self.is_untracked or self.is_ignored)


@dataclass
class CommandResult:
    """Outcome of one git CLI invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, as git splits messages between them."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)
