"""Plan workflow: branch per plan, completed moves and repository bootstrap."""

import os
from unittest.mock import MagicMock

import pytest
from dulwich import porcelain
from dulwich.repo import Repo

from conftest import requires_git
from plangit.git import (
    DirtyWorktreeError,
    NoCommitsDeclinedError,
    NothingToCommitError,
    ReferenceNotFoundError,
    Repository,
    WorkflowError,
    open_repository,
)
from plangit.services.workflow import PlanWorkflow, branch_display_name

PLAN = "docs/plans/2024-01-15-add-auth.md"


@pytest.fixture(params=["embedded", pytest.param("external", marks=requires_git)])
def repo(request, dulwich_repo):
    return open_repository(dulwich_repo, request.param)


@pytest.fixture
def reports():
    return []


@pytest.fixture
def workflow(repo, reports):
    return PlanWorkflow(repo, report=lambda fmt, *args: reports.append(fmt % args))


def _write_plan(root, rel=PLAN, text="# Add auth\n"):
    path = os.path.join(root, rel)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    return path


def _head_message(root):
    with Repo(root) as r:
        return r[r.head()].message.decode("utf-8")


def _commit_plan(repo, plan):
    repo.add(plan)
    repo.commit("add plan file")


def test_creates_branch_and_commits_plan(repo, workflow, reports):
    plan = _write_plan(repo.root())
    before = repo.head_hash()

    workflow.create_branch_for_plan(plan)

    assert repo.current_branch() == "add-auth"
    assert repo.head_hash() != before
    assert "add-auth" in _head_message(repo.root())
    assert not repo.file_has_changes(plan)
    assert not repo.is_dirty()
    assert reports == [
        "creating branch: add-auth\n",
        "committing plan file: 2024-01-15-add-auth.md\n",
    ]


def test_relative_plan_path_resolves_against_root(repo, workflow):
    _write_plan(repo.root())

    workflow.create_branch_for_plan(PLAN)

    assert repo.current_branch() == "add-auth"
    assert not repo.file_has_changes(PLAN)


def test_dirty_worktree_refuses_branch(repo, workflow):
    plan = _write_plan(repo.root())
    with open(os.path.join(repo.root(), "README.md"), "w") as f:
        f.write("# Changed\n")

    with pytest.raises(DirtyWorktreeError, match="uncommitted changes") as exc_info:
        workflow.create_branch_for_plan(plan)

    assert "add-auth" in str(exc_info.value)
    assert "master" in str(exc_info.value)
    assert repo.current_branch() == "master"
    assert not repo.branch_exists("add-auth")


def test_untracked_files_block_branch(repo, workflow):
    plan = _write_plan(repo.root())
    with open(os.path.join(repo.root(), "scratch.txt"), "w") as f:
        f.write("notes\n")

    with pytest.raises(DirtyWorktreeError):
        workflow.create_branch_for_plan(plan)


def test_switches_to_existing_branch_without_commit(repo, workflow, reports):
    plan = _write_plan(repo.root())
    _commit_plan(repo, plan)
    repo.create_branch("add-auth")
    head = repo.head_hash()
    repo.checkout_branch("master")

    workflow.create_branch_for_plan(plan)

    assert repo.current_branch() == "add-auth"
    assert repo.head_hash() == head
    assert reports == ["switching to existing branch: add-auth\n"]


def test_feature_branch_is_left_alone(repo, workflow, reports):
    repo.create_branch("other-work")
    plan = _write_plan(repo.root())
    head = repo.head_hash()

    workflow.create_branch_for_plan(plan)

    assert repo.current_branch() == "other-work"
    assert repo.head_hash() == head
    assert reports == []


def test_clean_plan_creates_branch_only(repo, workflow, reports):
    plan = _write_plan(repo.root())
    _commit_plan(repo, plan)
    head = repo.head_hash()

    workflow.create_branch_for_plan(plan)

    assert repo.current_branch() == "add-auth"
    assert repo.head_hash() == head
    assert reports == ["creating branch: add-auth\n"]


def test_move_tracked_plan_to_completed(repo, workflow, reports):
    plan = _write_plan(repo.root())
    _commit_plan(repo, plan)

    dest = workflow.move_plan_to_completed(plan)

    expected = os.path.join(
        repo.root(), "docs", "plans", "completed", os.path.basename(plan)
    )
    assert dest == expected
    assert os.path.exists(dest)
    assert not os.path.exists(plan)
    assert not repo.is_dirty()
    assert _head_message(repo.root()).startswith(
        "move completed plan: 2024-01-15-add-auth.md"
    )
    assert reports == [f"moved plan to {expected}\n"]


def test_move_untracked_plan_falls_back_to_rename(repo, workflow):
    plan = _write_plan(repo.root())
    before = repo.head_hash()

    dest = workflow.move_plan_to_completed(plan)

    assert os.path.exists(dest)
    assert not os.path.exists(plan)
    assert repo.head_hash() != before
    assert not repo.file_has_changes(dest)


def test_move_into_existing_completed_dir(repo, workflow):
    first = _write_plan(repo.root(), "docs/plans/2024-01-01-first.md")
    second = _write_plan(repo.root(), "docs/plans/2024-01-02-second.md")
    _commit_plan(repo, first)
    repo.add(second)
    repo.commit("add second plan")

    workflow.move_plan_to_completed(first)
    dest = workflow.move_plan_to_completed(second)

    assert sorted(os.listdir(os.path.dirname(dest))) == [
        "2024-01-01-first.md",
        "2024-01-02-second.md",
    ]


def test_move_resumes_after_uncommitted_move(repo, workflow, reports):
    plan = _write_plan(repo.root())
    _commit_plan(repo, plan)
    dest = os.path.join(
        repo.root(), "docs", "plans", "completed", os.path.basename(plan)
    )
    os.makedirs(os.path.dirname(dest))
    repo.move_file(plan, dest)

    assert workflow.move_plan_to_completed(plan) == dest

    assert not os.path.exists(plan)
    assert not repo.is_dirty()
    assert _head_message(repo.root()).startswith("move completed plan")
    assert reports == [f"moved plan to {dest}\n"]


def test_move_twice_is_a_no_op(repo, workflow):
    plan = _write_plan(repo.root())
    _commit_plan(repo, plan)
    workflow.move_plan_to_completed(plan)
    head = repo.head_hash()

    workflow.move_plan_to_completed(plan)

    assert repo.head_hash() == head


def test_move_refuses_existing_completed_plan(repo, workflow):
    plan = _write_plan(repo.root(), text="# New\n")
    old = _write_plan(
        repo.root(), "docs/plans/completed/2024-01-15-add-auth.md", text="# Old\n"
    )
    repo.add(plan)
    repo.add(old)
    repo.commit("add plans")
    head = repo.head_hash()

    with pytest.raises(WorkflowError, match="already exists"):
        workflow.move_plan_to_completed(plan)

    with open(old, encoding="utf-8") as f:
        assert f.read() == "# Old\n"
    assert os.path.exists(plan)
    assert repo.head_hash() == head


def test_ensure_gitignore_appends_pattern(repo, workflow, reports):
    assert workflow.ensure_gitignore() is True

    with open(os.path.join(repo.root(), ".gitignore"), encoding="utf-8") as f:
        content = f.read()
    assert content == "\n# progress logs\nprogress*.txt\n"
    assert reports == ["added progress*.txt to .gitignore\n"]

    assert workflow.ensure_gitignore() is False
    assert repo.is_ignored("progress-test.txt")


def test_ensure_gitignore_keeps_existing_rules(repo, workflow):
    gitignore = os.path.join(repo.root(), ".gitignore")
    with open(gitignore, "w", encoding="utf-8") as f:
        f.write("progress*.txt\n")

    assert workflow.ensure_gitignore() is False
    with open(gitignore, encoding="utf-8") as f:
        assert f.read() == "progress*.txt\n"


def test_branch_display_name(repo):
    assert branch_display_name(repo) == "master"


def test_branch_display_name_detached(dulwich_repo):
    repo = open_repository(dulwich_repo, "embedded")
    head = repo.head_hash()
    with open(os.path.join(dulwich_repo, ".git", "HEAD"), "w") as f:
        f.write(head + "\n")

    assert branch_display_name(repo) == "unknown"


def test_branch_display_name_on_error():
    backend = MagicMock()
    backend.current_branch.side_effect = ReferenceNotFoundError("broken")

    assert branch_display_name(Repository(backend)) == "unknown"


# ---------------------------------------------------------------------------
# Empty repositories
# ---------------------------------------------------------------------------


@pytest.fixture(params=["embedded", pytest.param("external", marks=requires_git)])
def empty_repo(request, tmp_path):
    r = porcelain.init(str(tmp_path))
    r.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    r.close()
    return open_repository(tmp_path, request.param)


def test_ensure_has_commits_noop_with_history(repo, workflow):
    prompt = MagicMock(return_value=False)
    head = repo.head_hash()

    workflow.ensure_has_commits(prompt)

    prompt.assert_not_called()
    assert repo.head_hash() == head


def test_ensure_has_commits_creates_initial_commit(empty_repo):
    root = empty_repo.root()
    with open(os.path.join(root, "main.py"), "w") as f:
        f.write("print('hi')\n")
    with open(os.path.join(root, ".gitignore"), "w") as f:
        f.write("*.log\n")
    with open(os.path.join(root, "debug.log"), "w") as f:
        f.write("noise\n")

    PlanWorkflow(empty_repo).ensure_has_commits(lambda: True)

    assert empty_repo.has_commits()
    assert _head_message(root).startswith("initial commit")
    with Repo(root) as r:
        tree = r[r[r.head()].tree]
        names = sorted(entry.path.decode() for entry in tree.items())
    assert names == [".gitignore", "main.py"]


def test_ensure_has_commits_declined(empty_repo):
    with open(os.path.join(empty_repo.root(), "main.py"), "w") as f:
        f.write("print('hi')\n")

    with pytest.raises(NoCommitsDeclinedError, match="create initial commit manually"):
        PlanWorkflow(empty_repo).ensure_has_commits(lambda: False)

    assert not empty_repo.has_commits()


def test_ensure_has_commits_without_files(empty_repo):
    with pytest.raises(NothingToCommitError, match="no files to commit"):
        PlanWorkflow(empty_repo).ensure_has_commits(lambda: True)
