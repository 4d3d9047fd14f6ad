"""External backend: drives the git command-line tool.

Every invocation runs at the repository root under the C locale with
``core.quotePath=false``, in its own process group so cancellation and
timeouts can kill the whole tree. Output wording is interpreted only through
``plangit.git.diagnostics``.
"""

from __future__ import annotations

import os
import subprocess
import threading
import time
from typing import Any

from plangit.config import settings
from plangit.git import diagnostics
from plangit.git.backend import GitBackend
from plangit.git.errors import (
    CommandFailureError,
    GitCancelledError,
    InvalidRepositoryError,
    NothingToCommitError,
    ReferenceNotFoundError,
    UnsupportedRepositoryError,
)
from plangit.git.paths import resolve_root
from plangit.git.types import CommandResult, DiffStats, StatusEntry
from plangit.platforms import get_os_adapter
from plangit.utils.logger import command_log, git_logger

# How often a running git process checks the cancel event
POLL_INTERVAL = 0.1


class ExternalBackend(GitBackend):
    """GitBackend implemented by running ``git`` as a subprocess."""

    name = "external"

    def __init__(
        self,
        path: str | os.PathLike[str] = ".",
        *,
        executable: str | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
        **kwargs: Any,
    ):
        self._executable = executable or settings.git_executable
        self._timeout = timeout if timeout is not None else settings.git_command_timeout
        self._cancel_event = cancel_event
        self._os = get_os_adapter()

        start = os.fspath(path)
        if not os.path.exists(start):
            raise InvalidRepositoryError(f"path does not exist: {start}")
        cwd = start if os.path.isdir(start) else os.path.dirname(start) or "."

        result = self._run(["rev-parse", "--show-toplevel"], cwd=cwd)
        if not result.ok:
            if diagnostics.is_unsupported_repository(result):
                raise UnsupportedRepositoryError(
                    f"unsupported repository format at {start}", result.stderr.strip()
                )
            raise InvalidRepositoryError(
                f"not a git repository: {start}", result.stderr.strip()
            )
        root = resolve_root(result.stdout.strip())
        super().__init__(root, **kwargs)
        git_logger.debug("Opened repository", backend=self.name, root=root)

    # ------------------------------------------------------------------
    # Process handling
    # ------------------------------------------------------------------

    def _run(self, args: list[str], *, cwd: str | None = None) -> CommandResult:
        """Run git and capture its output. Non-zero exits are returned, not raised.

        Raises:
            GitCancelledError: The cancel event fired or the timeout elapsed.
            CommandFailureError: The git executable could not be started.
        """
        cmd = [self._executable, "-c", "core.quotePath=false", *args]
        start = time.perf_counter()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd or self._root,
                env=self._os.english_locale_env(None),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **self._os.process_group_kwargs(),
            )
        except OSError as e:
            raise CommandFailureError(
                f"cannot run git executable '{self._executable}'",
                str(e),
                command=cmd,
            ) from e

        deadline = None if self._timeout is None else start + self._timeout
        try:
            while True:
                if self._cancel_event is not None and self._cancel_event.is_set():
                    self._kill(proc)
                    raise GitCancelledError(f"git {args[0]} cancelled")
                wait = POLL_INTERVAL if self._cancel_event is not None else None
                if deadline is not None:
                    remaining = deadline - time.perf_counter()
                    if remaining <= 0:
                        self._kill(proc)
                        raise GitCancelledError(
                            f"git {args[0]} timed out after {self._timeout}s"
                        )
                    wait = remaining if wait is None else min(wait, remaining)
                try:
                    stdout, stderr = proc.communicate(timeout=wait)
                    break
                except subprocess.TimeoutExpired:
                    continue
        except KeyboardInterrupt:
            self._kill(proc)
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        result = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            duration_ms=duration_ms,
        )
        command_log(
            git_logger,
            args,
            result.returncode,
            round(duration_ms, 1),
            stderr=result.stderr.strip()[:200] or None,
        )
        return result

    def _kill(self, proc: subprocess.Popen) -> None:
        self._os.terminate_process(proc)
        self._os.wait_terminated(proc)
        git_logger.warning("Killed git process group", pid=proc.pid)

    def _failure(
        self,
        result: CommandResult,
        message: str,
        error: type[CommandFailureError] = CommandFailureError,
    ) -> CommandFailureError:
        return error(
            message,
            result.output.strip(),
            returncode=result.returncode,
            command=[self._executable, *result.args],
        )

    def _check(self, args: list[str], message: str) -> CommandResult:
        result = self._run(args)
        if not result.ok:
            raise self._failure(result, message)
        return result

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _ref_exists(self, refname: str) -> bool:
        return self._run(["show-ref", "--verify", "--quiet", refname]).ok

    def _symbolic_ref(self, refname: str) -> str | None:
        result = self._run(["symbolic-ref", "-q", refname])
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def _resolve_commit(self, refname: str) -> str | None:
        result = self._run(["rev-parse", "--verify", "--quiet", f"{refname}^{{commit}}"])
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def _diff_commits(self, base_sha: str, head_sha: str) -> DiffStats:
        merge_base = self._run(["merge-base", base_sha, head_sha])
        if merge_base.returncode == 1:
            git_logger.debug("No merge base", base=base_sha, head=head_sha)
            return DiffStats()
        if not merge_base.ok:
            raise self._failure(merge_base, "failed to find merge base")
        result = self._check(
            [
                "diff",
                "--numstat",
                "--no-renames",
                "--no-ext-diff",
                merge_base.stdout.strip(),
                head_sha,
            ],
            "failed to compute diff stats",
        )
        return diagnostics.parse_numstat(result.stdout)

    def status(self) -> list[StatusEntry]:
        result = self._check(
            ["status", "--porcelain", "--untracked-files=all"],
            "failed to read working tree status",
        )
        return diagnostics.parse_porcelain(result.stdout)

    # ------------------------------------------------------------------
    # HEAD and branches
    # ------------------------------------------------------------------

    def has_commits(self) -> bool:
        result = self._run(["rev-parse", "HEAD"])
        if diagnostics.is_empty_head(result):
            return False
        if not result.ok:
            raise self._failure(result, "failed to read HEAD")
        # rev-parse does not look at the object itself
        sha = result.stdout.strip()
        if not self._run(["cat-file", "-e", f"{sha}^{{commit}}"]).ok:
            raise CommandFailureError("HEAD points at a missing object", sha)
        return True

    def head_hash(self) -> str:
        result = self._run(["rev-parse", "HEAD"])
        if diagnostics.is_empty_head(result):
            raise ReferenceNotFoundError("HEAD has no commits yet", result.stderr.strip())
        if not result.ok:
            raise self._failure(result, "failed to read HEAD")
        return result.stdout.strip()

    def current_branch(self) -> str:
        result = self._run(["symbolic-ref", "--short", "HEAD"])
        if diagnostics.is_detached_head(result):
            return ""
        if not result.ok:
            raise self._failure(result, "failed to read current branch")
        return result.stdout.strip()

    def create_branch(self, name: str) -> None:
        self._check(["checkout", "-b", name], f"failed to create branch '{name}'")
        git_logger.info("Created branch", branch=name, backend=self.name)

    def checkout_branch(self, name: str) -> None:
        if not self.branch_exists(name):
            raise ReferenceNotFoundError(f"branch '{name}' not found")
        result = self._run(["checkout", name, "--"])
        if diagnostics.is_local_changes_conflict(result):
            raise self._failure(
                result,
                "Your local changes to the following files would be overwritten "
                "by checkout",
            )
        if not result.ok:
            raise self._failure(result, f"failed to checkout branch '{name}'")
        git_logger.info("Switched branch", branch=name, backend=self.name)

    # ------------------------------------------------------------------
    # Working tree queries
    # ------------------------------------------------------------------

    def is_ignored(self, path: str | os.PathLike[str]) -> bool:
        rel = self.relative(path)
        if not rel:
            return False
        result = self._run(["check-ignore", "-q", "--", rel])
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise self._failure(result, f"failed to check ignore rules for '{rel}'")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, path: str | os.PathLike[str]) -> None:
        rel = self.relative(path) or "."
        self._check(["add", "--", rel], f"failed to stage '{rel}'")

    def move_file(
        self, src: str | os.PathLike[str], dst: str | os.PathLike[str]
    ) -> None:
        rel_src = self.relative(src)
        rel_dst = self.relative(dst)
        self._check(
            ["mv", "--", rel_src, rel_dst],
            f"failed to move '{rel_src}' to '{rel_dst}'",
        )

    def _commit(self, message: str, *, empty_message: str) -> None:
        result = self._run(["commit", "-m", message])
        if diagnostics.is_nothing_to_commit(result):
            raise self._failure(result, empty_message, NothingToCommitError)
        if not result.ok:
            raise self._failure(result, "failed to commit")
        git_logger.info("Committed", backend=self.name)

    def commit(self, message: str) -> None:
        self._commit(message, empty_message="nothing to commit")

    def create_initial_commit(self, message: str) -> None:
        self._check(["add", "-A"], "failed to stage files")
        status = self._check(["status", "--porcelain"], "failed to read status")
        if not status.stdout.strip():
            raise NothingToCommitError(
                "no files to commit", command=[self._executable, "commit", "-m", message]
            )
        self._commit(message, empty_message="no files to commit")
