"""Plan lifecycle on top of the repository façade.

Branch creation/reuse for a plan file, relocation of finished plans into
``completed/`` and bootstrapping of empty repositories. Steps are not
transactional; every operation can simply be re-run after a failure.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

from plangit.config import settings
from plangit.git.errors import (
    DirtyWorktreeError,
    GitError,
    NoCommitsDeclinedError,
    WorkflowError,
)
from plangit.git.repo import Repository
from plangit.plans import completed_dir, extract_branch_name
from plangit.utils.logger import workflow_logger

ReportFn = Callable[..., Any]

INITIAL_COMMIT_MESSAGE = "initial commit"
PROGRESS_PROBE_FILE = "progress-test.txt"


def _log_report(fmt: str, *args: Any) -> None:
    workflow_logger.info(fmt.rstrip("\n"), *args)


def branch_display_name(repo: Repository) -> str:
    """Current branch for banners; "unknown" when detached or unreadable."""
    try:
        return repo.current_branch() or "unknown"
    except GitError:
        return "unknown"


class PlanWorkflow:
    """Branch and commit policy for one plan file at a time.

    ``report`` receives printf-style progress messages (``report(fmt, *args)``);
    by default they go to the workflow logger.
    """

    def __init__(self, repo: Repository, report: ReportFn | None = None):
        self._repo = repo
        self._report = report or _log_report

    @property
    def repo(self) -> Repository:
        return self._repo

    def _plan_path(self, plan_file: str | os.PathLike[str]) -> str:
        path = os.fspath(plan_file)
        if not os.path.isabs(path):
            path = os.path.join(self._repo.root(), path)
        return path

    def create_branch_for_plan(self, plan_file: str | os.PathLike[str]) -> None:
        """Move work for ``plan_file`` onto its own branch.

        Does nothing when already off the primary branches. Otherwise creates
        (or switches to) the branch named after the plan and commits the plan
        file if it has changes.

        Raises:
            DirtyWorktreeError: Files other than the plan have uncommitted changes.
            WorkflowError: A git step failed; the cause is chained.
        """
        plan = self._plan_path(plan_file)
        try:
            if not self._repo.is_main_branch():
                return
            branch = extract_branch_name(plan)
            current = self._repo.current_branch()
            other_changes = self._repo.has_changes_other_than(plan)
        except GitError as e:
            raise WorkflowError(f"check worktree state: {e}", e.diagnostic) from e

        if other_changes:
            raise DirtyWorktreeError(
                f"cannot create branch {branch!r}: worktree has uncommitted changes\n\n"
                f"a feature branch is created from {current} to isolate plan work.\n\n"
                "options:\n"
                "  git stash, re-run, git stash pop   # stash changes temporarily\n"
                '  git commit -am "wip"               # commit changes first\n'
                "  review-only mode                   # skip branch creation"
            )

        try:
            plan_has_changes = self._repo.file_has_changes(plan)
        except GitError as e:
            raise WorkflowError(f"check plan file status: {e}", e.diagnostic) from e

        if self._repo.branch_exists(branch):
            self._report("switching to existing branch: %s\n", branch)
            try:
                self._repo.checkout_branch(branch)
            except GitError as e:
                raise WorkflowError(
                    f"checkout branch {branch}: {e}", e.diagnostic
                ) from e
        else:
            self._report("creating branch: %s\n", branch)
            try:
                self._repo.create_branch(branch)
            except GitError as e:
                raise WorkflowError(f"create branch {branch}: {e}", e.diagnostic) from e

        if plan_has_changes:
            self._report("committing plan file: %s\n", os.path.basename(plan))
            try:
                self._repo.add(plan)
                self._repo.commit(f"add plan: {branch}")
            except GitError as e:
                raise WorkflowError(f"commit plan file: {e}", e.diagnostic) from e

    def move_plan_to_completed(self, plan_file: str | os.PathLike[str]) -> str:
        """Move ``plan_file`` into its sibling completed directory and commit.

        Untracked plans fall back to a plain rename. A plan that an earlier run
        already moved is only staged and committed. Returns the new path.

        Raises:
            WorkflowError: The destination is taken or the move failed.
        """
        plan = self._plan_path(plan_file)
        target_dir = completed_dir(plan)
        dest = os.path.join(target_dir, os.path.basename(plan))

        if not os.path.lexists(plan) and os.path.lexists(dest):
            workflow_logger.info("Plan already moved", plan=plan, dest=dest)
        elif os.path.lexists(dest):
            raise WorkflowError(f"move plan: {dest} already exists")
        else:
            self._move(plan, dest)

        try:
            self._repo.add(dest)
        except GitError as e:
            workflow_logger.warning(
                "Failed to stage moved plan", path=dest, error=str(e)
            )

        try:
            if self._has_staged_change(dest):
                self._repo.commit(f"move completed plan: {os.path.basename(plan)}")
        except GitError as e:
            raise WorkflowError(f"commit completed plan: {e}", e.diagnostic) from e

        self._report("moved plan to %s\n", dest)
        return dest

    def _move(self, plan: str, dest: str) -> None:
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            if self._is_untracked(plan):
                os.rename(plan, dest)
                return
            self._repo.move_file(plan, dest)
        except OSError as e:
            raise WorkflowError(f"move plan: {e}") from e
        except GitError as e:
            raise WorkflowError(f"move plan: {e}", e.diagnostic) from e

    def _is_untracked(self, path: str) -> bool:
        if self._repo.is_ignored(path):
            return True
        rel = self._repo.backend.relative(path)
        return any(e.code == "??" and e.path == rel for e in self._repo.status())

    def _has_staged_change(self, path: str) -> bool:
        rel = self._repo.backend.relative(path)
        return any(
            e.code[0] not in " ?" and rel in (e.path, e.orig_path)
            for e in self._repo.status()
        )

    def ensure_has_commits(self, prompt_fn: Callable[[], bool]) -> None:
        """Make sure HEAD has a commit, asking ``prompt_fn`` before creating one.

        Raises:
            NoCommitsDeclinedError: The prompt was declined.
            NothingToCommitError: The working tree has no files to commit.
        """
        try:
            if self._repo.has_commits():
                return
        except GitError as e:
            raise WorkflowError(f"check commits: {e}", e.diagnostic) from e

        if not prompt_fn():
            raise NoCommitsDeclinedError(
                "no commits - please create initial commit manually"
            )

        self._repo.create_initial_commit(INITIAL_COMMIT_MESSAGE)

    def ensure_gitignore(
        self,
        probe: str = PROGRESS_PROBE_FILE,
        pattern: str | None = None,
    ) -> bool:
        """Append the progress-log pattern to the root .gitignore if needed.

        Returns True when .gitignore was changed.
        """
        pattern = pattern or settings.progress_ignore_pattern
        try:
            if self._repo.is_ignored(probe):
                return False
        except GitError as e:
            workflow_logger.debug("Ignore check failed", probe=probe, error=str(e))

        gitignore = os.path.join(self._repo.root(), ".gitignore")
        with open(gitignore, "a", encoding="utf-8") as f:
            f.write(f"\n# progress logs\n{pattern}\n")

        self._report("added %s to .gitignore\n", pattern)
        return True
