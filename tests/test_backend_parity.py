"""Conformance suite: both backends must answer read-only queries identically.

Each fixture state is built with the git CLI, then queried through the
embedded and external backends side by side.
"""

import pytest

from conftest import init_git_repo, requires_git, run_git
from plangit.git.embedded import EmbeddedBackend
from plangit.git.errors import CommandFailureError
from plangit.git.external import ExternalBackend
from plangit.git.types import StatusEntry

pytestmark = requires_git

PROBE_PATHS = (
    "README.md",
    "new.txt",
    "staged.txt",
    "docs/plans/2024-01-15-add-auth.md",
    "debug.log",
    "progress-test.txt",
    "missing.txt",
    "a.txt",
    "b.txt",
    "moved.txt",
)


def _state_clean(path):
    init_git_repo(path)


def _state_dirty_tracked(path):
    init_git_repo(path)
    (path / "tracked.txt").write_text("one\n")
    run_git(path, "add", "tracked.txt")
    run_git(path, "commit", "-m", "add tracked")
    (path / "README.md").write_text("# Modified\n")
    (path / "staged.txt").write_text("staged\n")
    run_git(path, "add", "staged.txt")
    (path / "tracked.txt").unlink()


def _state_untracked_only(path):
    init_git_repo(path)
    plans = path / "docs" / "plans"
    plans.mkdir(parents=True)
    (plans / "2024-01-15-add-auth.md").write_text("# Add auth\n")
    (path / "new.txt").write_text("new\n")


def _state_ignored(path):
    init_git_repo(path)
    (path / ".gitignore").write_text("*.log\nprogress-*.txt\n")
    run_git(path, "add", ".gitignore")
    run_git(path, "commit", "-m", "add gitignore")
    (path / "debug.log").write_text("debug\n")
    (path / "progress-test.txt").write_text("progress\n")


def _state_detached(path):
    init_git_repo(path)
    (path / "new.txt").write_text("a\n")
    run_git(path, "add", "new.txt")
    run_git(path, "commit", "-m", "second")
    run_git(path, "checkout", "--detach", "HEAD~1")


def _state_feature_branch(path):
    init_git_repo(path)
    run_git(path, "checkout", "-b", "feature")
    (path / "new.txt").write_text("1\n2\n3\n4\n5\n")
    (path / "README.md").write_text("# Changed\nLine2\nLine3\n")
    run_git(path, "add", "-A")
    run_git(path, "commit", "-m", "feature work")


def _state_empty(path):
    run_git(path, "init")
    run_git(path, "symbolic-ref", "HEAD", "refs/heads/master")
    (path / "new.txt").write_text("x\n")


def _state_staged_rename(path):
    init_git_repo(path)
    (path / "a.txt").write_text("".join(f"line {n}\n" for n in range(1, 11)))
    run_git(path, "add", "a.txt")
    run_git(path, "commit", "-m", "add a.txt")
    run_git(path, "mv", "a.txt", "b.txt")
    with (path / "b.txt").open("a") as f:
        f.write("line 11\n")
    run_git(path, "add", "b.txt")


def _state_moved_block(path):
    init_git_repo(path)
    (path / "moved.txt").write_text("b1\nb2\nb3\nc1a\nc1b\nc2a\nc2b\n")
    run_git(path, "add", "moved.txt")
    run_git(path, "commit", "-m", "add moved.txt")
    run_git(path, "checkout", "-b", "feature")
    (path / "moved.txt").write_text("c1a\nc1b\nz\nc2a\nc2b\nb1\nb2\nb3\n")
    run_git(path, "commit", "-am", "reorder")


STATES = {
    "clean": _state_clean,
    "dirty-tracked": _state_dirty_tracked,
    "untracked-only": _state_untracked_only,
    "ignored-present": _state_ignored,
    "detached": _state_detached,
    "feature-branch": _state_feature_branch,
    "empty": _state_empty,
    "staged-rename-edit": _state_staged_rename,
    "moved-block": _state_moved_block,
}


@pytest.fixture(params=sorted(STATES))
def backends(request, tmp_path):
    STATES[request.param](tmp_path)
    return EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)


def _answer(call):
    """Result of a query, or the exception type it raised."""
    try:
        return call()
    except Exception as e:
        return type(e)


def _snapshot(backend):
    snapshot = {
        "root": backend.root(),
        "has_commits": _answer(backend.has_commits),
        "head_hash": _answer(backend.head_hash),
        "current_branch": _answer(backend.current_branch),
        "is_main_branch": _answer(backend.is_main_branch),
        "default_branch": _answer(backend.default_branch),
        "branch_exists(master)": backend.branch_exists("master"),
        "branch_exists(feature)": backend.branch_exists("feature"),
        "branch_exists(missing)": backend.branch_exists("missing"),
        "is_dirty": _answer(backend.is_dirty),
        "status": _answer(lambda: sorted(backend.status(), key=lambda e: e.path)),
        "diff_stats(master)": _answer(lambda: backend.diff_stats("master")),
        "diff_stats(missing)": _answer(lambda: backend.diff_stats("missing")),
    }
    for path in PROBE_PATHS:
        snapshot[f"file_has_changes({path})"] = _answer(
            lambda p=path: backend.file_has_changes(p)
        )
        snapshot[f"has_changes_other_than({path})"] = _answer(
            lambda p=path: backend.has_changes_other_than(p)
        )
        snapshot[f"is_ignored({path})"] = _answer(lambda p=path: backend.is_ignored(p))
    return snapshot


def test_read_only_queries_match(backends):
    embedded, external = backends

    embedded_answers = _snapshot(embedded)
    external_answers = _snapshot(external)

    mismatches = {
        key: (embedded_answers[key], external_answers[key])
        for key in embedded_answers
        if embedded_answers[key] != external_answers[key]
    }
    assert mismatches == {}


def test_feature_branch_diff_stats_values(tmp_path):
    _state_feature_branch(tmp_path)

    for backend in (EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)):
        stats = backend.diff_stats("master")
        assert (stats.files, stats.additions, stats.deletions) == (2, 8, 1)


def test_untracked_only_is_not_dirty(tmp_path):
    _state_untracked_only(tmp_path)

    for backend in (EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)):
        assert not backend.is_dirty()
        assert backend.has_changes_other_than("new.txt")
        assert not backend.file_has_changes("README.md")


def test_staged_rename_with_edit_pairs_paths(tmp_path):
    _state_staged_rename(tmp_path)

    for backend in (EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)):
        assert backend.status() == [StatusEntry("R ", "b.txt", "a.txt")]
        assert not backend.has_changes_other_than("b.txt")
        assert not backend.file_has_changes("a.txt")


def test_moved_block_diff_stats_values(tmp_path):
    _state_moved_block(tmp_path)

    for backend in (EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)):
        stats = backend.diff_stats("master")
        assert (stats.files, stats.additions, stats.deletions) == (1, 4, 3)


def test_broken_branch_ref_is_not_an_empty_repository(tmp_path):
    init_git_repo(tmp_path)
    (tmp_path / ".git" / "refs" / "heads" / "master").write_text("garbage\n")

    for backend in (EmbeddedBackend(tmp_path), ExternalBackend(tmp_path)):
        with pytest.raises(CommandFailureError):
            backend.has_commits()
        with pytest.raises(CommandFailureError):
            backend.head_hash()
        with pytest.raises(CommandFailureError):
            backend.current_branch()
        assert not backend.branch_exists("master")
