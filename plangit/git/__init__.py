"""Version-control layer: two interchangeable backends behind one façade."""

from .backend import GitBackend
from .embedded import EmbeddedBackend
from .errors import (
    CommandFailureError,
    DirtyWorktreeError,
    GitCancelledError,
    GitError,
    InvalidRepositoryError,
    NoCommitsDeclinedError,
    NothingToCommitError,
    PathViolationError,
    ReferenceNotFoundError,
    UnsupportedRepositoryError,
    WorkflowError,
)
from .external import ExternalBackend
from .repo import Repository, open_repository
from .types import CommandResult, DiffStats, StatusEntry

__all__ = [
    "GitBackend",
    "EmbeddedBackend",
    "ExternalBackend",
    "Repository",
    "open_repository",
    "DiffStats",
    "StatusEntry",
    "CommandResult",
    "GitError",
    "InvalidRepositoryError",
    "UnsupportedRepositoryError",
    "PathViolationError",
    "ReferenceNotFoundError",
    "CommandFailureError",
    "NothingToCommitError",
    "GitCancelledError",
    "WorkflowError",
    "DirtyWorktreeError",
    "NoCommitsDeclinedError",
]
