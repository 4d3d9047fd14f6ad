"""Shared pytest fixtures for all tests."""

import shutil
import subprocess
from pathlib import Path

import pytest
from dulwich import porcelain

GIT_AVAILABLE = shutil.which("git") is not None

requires_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git binary not found")


@pytest.fixture(autouse=True)
def isolated_git_env(monkeypatch, tmp_path_factory):
    """Keep user/system git config out of tests and give commits an identity."""
    home = Path(tmp_path_factory.mktemp("home"))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@test.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@test.com")
    monkeypatch.setenv("PLANGIT_CONFIG_DIR", str(home / "plangit"))
    for key in ("PLANGIT_GIT_BACKEND", "PLANGIT_GIT_EXECUTABLE", "PLANGIT_GIT_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)
    # Editors and repository overrides from the caller change how git behaves
    for key in (
        "GIT_EDITOR",
        "GIT_SEQUENCE_EDITOR",
        "VISUAL",
        "EDITOR",
        "GIT_PAGER",
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_INDEX_FILE",
        "GIT_OBJECT_DIRECTORY",
        "GIT_COMMON_DIR",
    ):
        monkeypatch.delenv(key, raising=False)
    return home


def run_git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stdout, failing the test on error."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout


def init_git_repo(path: Path) -> Path:
    """Repository on master with one commit of README.md."""
    run_git(path, "init")
    run_git(path, "checkout", "-B", "master")
    run_git(path, "config", "user.email", "test@test.com")
    run_git(path, "config", "user.name", "Test")
    (path / "README.md").write_text("# Test\n")
    run_git(path, "add", "README.md")
    run_git(path, "commit", "-m", "initial commit")
    return path


@pytest.fixture
def git_repo(tmp_path):
    """Repository created with the git CLI (skips when git is missing)."""
    if not GIT_AVAILABLE:
        pytest.skip("git binary not found")
    return init_git_repo(tmp_path)


@pytest.fixture
def empty_git_repo(tmp_path):
    """Freshly initialised repository without commits, HEAD on master."""
    if not GIT_AVAILABLE:
        pytest.skip("git binary not found")
    run_git(tmp_path, "init")
    run_git(tmp_path, "symbolic-ref", "HEAD", "refs/heads/master")
    return tmp_path


@pytest.fixture
def dulwich_repo(tmp_path):
    """Repository created with dulwich only, usable without the git binary."""
    repo = porcelain.init(str(tmp_path))
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    (tmp_path / "README.md").write_text("# Test\n")
    porcelain.add(repo, paths=[str(tmp_path / "README.md")])
    porcelain.commit(
        repo,
        message=b"initial commit\n",
        author=b"Test <test@test.com>",
        committer=b"Test <test@test.com>",
    )
    repo.close()
    return tmp_path
