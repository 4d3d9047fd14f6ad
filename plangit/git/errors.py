"""Error hierarchy shared by both git backends and the plan workflow."""

from __future__ import annotations


class GitError(Exception):
    """Base class for repository and workflow failures.

    ``diagnostic`` keeps the underlying tool or library text (stderr of the git
    CLI, the dulwich exception message) so callers can surface it verbatim.
    """

    def __init__(self, message: str, diagnostic: str | None = None):
        super().__init__(message)
        self.diagnostic = diagnostic


class InvalidRepositoryError(GitError):
    """Path is not inside an existing git repository."""


class UnsupportedRepositoryError(InvalidRepositoryError):
    """Repository exists but uses a format the embedded backend cannot read."""


class PathViolationError(GitError, ValueError):
    """A caller-supplied path resolves outside the repository root."""


class ReferenceNotFoundError(GitError):
    """A branch, ref or HEAD commit does not exist."""


class CommandFailureError(GitError):
    """A repository operation failed for a reason other than a benign condition."""

    def __init__(
        self,
        message: str,
        diagnostic: str | None = None,
        *,
        returncode: int | None = None,
        command: list[str] | None = None,
    ):
        super().__init__(message, diagnostic)
        self.returncode = returncode
        self.command = command or []

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostic and self.diagnostic not in base:
            return f"{base}: {self.diagnostic}"
        return base


class NothingToCommitError(CommandFailureError):
    """Commit requested with an empty stage."""


class GitCancelledError(GitError):
    """A git subprocess was cancelled or timed out and its process group killed."""


class WorkflowError(GitError):
    """Plan workflow could not complete a step."""


class DirtyWorktreeError(WorkflowError):
    """Unrelated uncommitted changes block creating a plan branch."""


class NoCommitsDeclinedError(WorkflowError):
    """Repository has no commits and the user declined to create one."""
