"""Embedded backend: reads and writes the repository through dulwich.

No git binary is needed. Refs, the index and the object store are accessed
directly, and failure modes are classified from repository structure
(raw HEAD contents, object presence) instead of diagnostic text.
"""

from __future__ import annotations

import os
import posixpath
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from dulwich import porcelain
from dulwich.diff_tree import (
    CHANGE_ADD,
    CHANGE_COPY,
    CHANGE_DELETE,
    CHANGE_RENAME,
    RenameDetector,
    TreeChange,
    tree_changes,
)
from dulwich.errors import NotGitRepository
from dulwich.graph import find_merge_base
from dulwich.ignore import IgnoreFilterManager
from dulwich.index import (
    Index,
    blob_from_path_and_stat,
    build_file_from_blob,
    cleanup_mode,
    get_unstaged_changes,
    index_entry_from_stat,
)
from dulwich.objects import (
    Blob,
    Commit,
    S_ISGITLINK,
    Tag,
    TreeEntry,
    valid_hexsha,
)
from dulwich.refs import SYMREF
from dulwich.repo import Repo, UnsupportedExtension, UnsupportedVersion

from plangit.git.backend import LOCAL_BRANCH_PREFIX, GitBackend
from plangit.git.errors import (
    CommandFailureError,
    InvalidRepositoryError,
    NothingToCommitError,
    ReferenceNotFoundError,
    UnsupportedRepositoryError,
)
from plangit.git.paths import resolve_root, to_absolute
from plangit.git.types import DiffStats, StatusEntry
from plangit.platforms import normalize_path
from plangit.utils.logger import git_logger

HEAD_REF = b"HEAD"
# git treats a file as binary when the first 8000 bytes contain a NUL
BINARY_PROBE_SIZE = 8000
EMPTY_BLOB_ID = b"e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
# git status pairs a deletion with an addition at 50% similarity
RENAME_MIN_SCORE = 50
RENAME_MAX_FILES = 1000


def _open_repo(path: str) -> Repo:
    try:
        return Repo(path)
    except (UnsupportedVersion, UnsupportedExtension) as e:
        raise UnsupportedRepositoryError(
            f"unsupported repository format at {path}", str(e)
        ) from e
    except NotGitRepository as e:
        raise InvalidRepositoryError(f"not a git repository: {path}", str(e)) from e


def _discover(path: str) -> Repo:
    try:
        return Repo.discover(path)
    except (UnsupportedVersion, UnsupportedExtension) as e:
        raise UnsupportedRepositoryError(
            f"unsupported repository format at {path}", str(e)
        ) from e
    except NotGitRepository as e:
        raise InvalidRepositoryError(f"not a git repository: {path}", str(e)) from e


def _open_index(repo: Repo) -> Index:
    # A fresh "git init" has no index file yet
    if not os.path.exists(repo.index_path()):
        return Index(repo.index_path(), read=False)
    return repo.open_index()


def _encode(rel: str) -> bytes:
    return rel.encode("utf-8")


def _decode(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return normalize_path(raw)
    return raw.decode("utf-8", errors="surrogateescape")


def _entry_path(entry: TreeEntry | None) -> str | None:
    # Older dulwich reports a missing side as an entry of Nones
    if entry is None or entry.path is None:
        return None
    return _decode(entry.path)


def _is_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_PROBE_SIZE]


def _split_lines(data: bytes) -> list[bytes]:
    """Split into lines keeping terminators so a missing final newline counts."""
    parts = data.split(b"\n")
    lines = [part + b"\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _edit_distance(a: list[bytes], b: list[bytes]) -> int:
    """Length of the shortest edit script turning ``a`` into ``b`` (Myers)."""
    n, m = len(a), len(b)
    # Furthest x reached on each diagonal k = x - y
    frontier = {1: 0}
    for d in range(n + m + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and frontier[k - 1] < frontier[k + 1]):
                x = frontier[k + 1]
            else:
                x = frontier[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            frontier[k] = x
            if x >= n and y >= m:
                return d
    return n + m


def count_line_changes(old: bytes, new: bytes) -> tuple[int, int]:
    """Return (additions, deletions) between two text blobs.

    Counts come from a longest common subsequence of lines, so a moved block
    is reported the way ``git diff --numstat`` reports it.
    """
    old_lines = _split_lines(old)
    new_lines = _split_lines(new)

    start = 0
    limit = min(len(old_lines), len(new_lines))
    while start < limit and old_lines[start] == new_lines[start]:
        start += 1
    old_end, new_end = len(old_lines), len(new_lines)
    while (
        old_end > start
        and new_end > start
        and old_lines[old_end - 1] == new_lines[new_end - 1]
    ):
        old_end -= 1
        new_end -= 1
    old_mid = old_lines[start:old_end]
    new_mid = new_lines[start:new_end]
    if not old_mid or not new_mid:
        return len(new_mid), len(old_mid)

    # Lines missing from the other side can never be part of the match
    old_set, new_set = set(old_mid), set(new_mid)
    old_kept = [line for line in old_mid if line in new_set]
    new_kept = [line for line in new_mid if line in old_set]
    common = (len(old_kept) + len(new_kept) - _edit_distance(old_kept, new_kept)) // 2
    return len(new_mid) - common, len(old_mid) - common


class EmbeddedBackend(GitBackend):
    """GitBackend implemented on dulwich. Opens the repository per operation."""

    name = "embedded"

    def __init__(self, path: str | os.PathLike[str] = ".", **kwargs: Any):
        start = os.fspath(path)
        if not os.path.exists(start):
            raise InvalidRepositoryError(f"path does not exist: {start}")
        repo = _discover(start)
        try:
            if repo.bare:
                raise InvalidRepositoryError(
                    f"bare repository has no working tree: {repo.path}"
                )
            root = resolve_root(repo.path)
        finally:
            repo.close()
        super().__init__(root, **kwargs)
        git_logger.debug("Opened repository", backend=self.name, root=root)

    @contextmanager
    def _open(self) -> Iterator[Repo]:
        repo = _open_repo(self._root)
        try:
            yield repo
        finally:
            repo.close()

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _ref_exists(self, refname: str) -> bool:
        with self._open() as repo:
            try:
                sha = repo.refs[_encode(refname)]
            except KeyError:
                return False
        # git skips ref files that do not hold an object id
        return valid_hexsha(sha)

    def _symbolic_ref(self, refname: str) -> str | None:
        with self._open() as repo:
            raw = repo.refs.read_ref(_encode(refname))
        if raw is None or not raw.startswith(SYMREF):
            return None
        return _decode(raw[len(SYMREF) :].strip())

    def _resolve_commit(self, refname: str) -> str | None:
        with self._open() as repo:
            try:
                sha = repo.refs[_encode(refname)]
                if not valid_hexsha(sha):
                    return None
                obj = repo[sha]
                while isinstance(obj, Tag):
                    obj = repo[obj.object[1]]
            except KeyError:
                return None
            if not isinstance(obj, Commit):
                return None
            return obj.id.decode("ascii")

    def _head_state(self, repo: Repo) -> tuple[bytes | None, bytes | None]:
        """Return (symref target, sha) of HEAD.

        The target is None when HEAD is detached and the sha is None on an
        unborn branch. A missing HEAD or a ref holding something other than an
        object id raises CommandFailureError.
        """
        target = None
        try:
            raw = repo.refs.read_ref(HEAD_REF)
            if raw is None:
                raise CommandFailureError("HEAD is missing", f"{self._root}: no HEAD")
            if raw.startswith(SYMREF):
                target = raw[len(SYMREF) :].strip()
                try:
                    sha = repo.refs[target]
                except KeyError:
                    return target, None
            else:
                sha = raw.strip()
        except (OSError, ValueError) as e:
            raise CommandFailureError("failed to read HEAD", str(e)) from e
        if not valid_hexsha(sha):
            name = _decode(target) if target is not None else "HEAD"
            raise CommandFailureError(f"broken ref {name}", _decode(sha))
        return target, sha

    def _head_tree(self, repo: Repo) -> bytes | None:
        _target, sha = self._head_state(repo)
        if sha is None:
            return None
        try:
            commit = repo[sha]
        except KeyError as e:
            raise CommandFailureError(
                "HEAD points at a missing object", _decode(sha)
            ) from e
        return commit.tree

    def _index_changes(self, repo: Repo, index: Index) -> list[TreeChange]:
        """Index vs HEAD tree, pairing renames the way ``git status`` does."""
        detector = RenameDetector(
            repo.object_store,
            # dulwich keeps pairs scoring strictly above the threshold
            rename_threshold=RENAME_MIN_SCORE - 1,
            max_files=RENAME_MAX_FILES,
        )
        return list(
            tree_changes(
                repo.object_store,
                self._head_tree(repo),
                index.commit(repo.object_store),
                rename_detector=detector,
            )
        )

    def _staged_changes(
        self, repo: Repo, index: Index
    ) -> list[tuple[str | None, str | None, bytes | None, bytes | None]]:
        """(old_path, new_path, old_sha, new_sha) for index vs HEAD tree."""
        changes = []
        for (old_path, new_path), _modes, (old_sha, new_sha) in index.changes_from_tree(
            repo.object_store, self._head_tree(repo)
        ):
            changes.append(
                (
                    _decode(old_path) if old_path is not None else None,
                    _decode(new_path) if new_path is not None else None,
                    old_sha,
                    new_sha,
                )
            )
        return changes

    def _unstaged_paths(self, index: Index) -> list[str]:
        return [_decode(raw) for raw in get_unstaged_changes(index, self._root)]

    def _untracked_paths(self, index: Index) -> list[str]:
        return [
            normalize_path(path)
            for path in porcelain.get_untracked_paths(
                self._root,
                self._root,
                index,
                exclude_ignored=True,
                untracked_files="all",
            )
        ]

    def status(self) -> list[StatusEntry]:
        with self._open() as repo:
            index = _open_index(repo)
            staged: dict[str, str] = {}
            renames: dict[str, str] = {}
            for change in self._index_changes(repo, index):
                old_path = _entry_path(change.old)
                new_path = _entry_path(change.new)
                if change.type == CHANGE_RENAME and change.old.sha != EMPTY_BLOB_ID:
                    staged[new_path] = "R"
                    renames[new_path] = old_path
                elif change.type == CHANGE_RENAME:
                    # Empty files are never rename sources
                    staged[old_path] = "D"
                    staged[new_path] = "A"
                elif change.type in (CHANGE_ADD, CHANGE_COPY):
                    staged[new_path] = "A"
                elif change.type == CHANGE_DELETE:
                    staged[old_path] = "D"
                else:
                    staged[new_path] = "M"

            unstaged: dict[str, str] = {}
            for rel in self._unstaged_paths(index):
                exists = os.path.lexists(to_absolute(self._root, rel))
                unstaged[rel] = "M" if exists else "D"

            untracked = self._untracked_paths(index)

        entries = [
            StatusEntry(
                code=staged.get(path, " ") + unstaged.get(path, " "),
                path=path,
                orig_path=renames.get(path),
            )
            for path in sorted(set(staged) | set(unstaged))
        ]
        entries.extend(StatusEntry(code="??", path=path) for path in sorted(untracked))
        return entries

    def _text_data(self, repo: Repo, sha: bytes) -> bytes | None:
        obj = repo[sha]
        if not isinstance(obj, Blob):
            return None
        data = obj.as_raw_string()
        return None if _is_binary(data) else data

    def _diff_commits(self, base_sha: str, head_sha: str) -> DiffStats:
        with self._open() as repo:
            bases = find_merge_base(repo, [base_sha.encode(), head_sha.encode()])
            if not bases:
                git_logger.debug("No merge base", base=base_sha, head=head_sha)
                return DiffStats()
            old_tree = repo[bases[0]].tree
            new_tree = repo[head_sha.encode()].tree

            files = additions = deletions = 0
            for change in tree_changes(repo.object_store, old_tree, new_tree):
                old, new = change.old, change.new
                files += 1
                old_mode = old.mode if change.type != CHANGE_ADD else None
                new_mode = new.mode if change.type != CHANGE_DELETE else None
                # Submodules diff as a single "Subproject commit" line
                if (old_mode and S_ISGITLINK(old_mode)) or (
                    new_mode and S_ISGITLINK(new_mode)
                ):
                    additions += 1 if new_mode else 0
                    deletions += 1 if old_mode else 0
                    continue

                old_data = b"" if old_mode is None else self._text_data(repo, old.sha)
                new_data = b"" if new_mode is None else self._text_data(repo, new.sha)
                if old_data is None or new_data is None:
                    continue
                added_lines, deleted_lines = count_line_changes(old_data, new_data)
                additions += added_lines
                deletions += deleted_lines

        return DiffStats(files=files, additions=additions, deletions=deletions)

    # ------------------------------------------------------------------
    # HEAD and branches
    # ------------------------------------------------------------------

    def has_commits(self) -> bool:
        with self._open() as repo:
            _target, sha = self._head_state(repo)
            if sha is None:
                return False
            if sha not in repo.object_store:
                raise CommandFailureError(
                    "HEAD points at a missing object", _decode(sha)
                )
            return True

    def head_hash(self) -> str:
        with self._open() as repo:
            _target, sha = self._head_state(repo)
        if sha is None:
            raise ReferenceNotFoundError("HEAD has no commits yet")
        return sha.decode("ascii")

    def current_branch(self) -> str:
        with self._open() as repo:
            target, _sha = self._head_state(repo)
        if target is None:
            return ""
        branch = _decode(target)
        if branch.startswith(LOCAL_BRANCH_PREFIX):
            return branch[len(LOCAL_BRANCH_PREFIX) :]
        return branch

    def create_branch(self, name: str) -> None:
        ref = _encode(LOCAL_BRANCH_PREFIX + name)
        if self.branch_exists(name):
            raise CommandFailureError(
                f"a branch named '{name}' already exists", command=["create_branch", name]
            )
        has_commits = self.has_commits()
        with self._open() as repo:
            if has_commits:
                if not repo.refs.add_if_new(ref, repo.refs[HEAD_REF]):
                    raise CommandFailureError(
                        f"a branch named '{name}' already exists",
                        command=["create_branch", name],
                    )
            # Unborn HEAD: switching the symref is all git does too
            repo.refs.set_symbolic_ref(HEAD_REF, ref)
        git_logger.info("Created branch", branch=name, backend=self.name)

    def checkout_branch(self, name: str) -> None:
        ref = _encode(LOCAL_BRANCH_PREFIX + name)
        if not self.branch_exists(name):
            raise ReferenceNotFoundError(f"branch '{name}' not found")
        if self.current_branch() == name:
            return

        with self._open() as repo:
            target_commit = repo[repo.refs[ref]]
            head_tree = self._head_tree(repo)
            if head_tree != target_commit.tree:
                self._switch_tree(repo, head_tree, target_commit.tree)
            repo.refs.set_symbolic_ref(HEAD_REF, ref)
        git_logger.info("Switched branch", branch=name, backend=self.name)

    def _switch_tree(self, repo: Repo, old_tree: bytes | None, new_tree: bytes) -> None:
        """Update index and working tree from one tree to another.

        Refuses to touch files with local changes, like ``git checkout``.
        """
        index = _open_index(repo)
        changes = list(tree_changes(repo.object_store, old_tree, new_tree))

        local = {
            path
            for old_path, new_path, _old_sha, _new_sha in self._staged_changes(
                repo, index
            )
            for path in (old_path, new_path)
            if path is not None
        }
        local.update(self._unstaged_paths(index))

        conflicts: list[str] = []
        untracked_conflicts: list[str] = []
        for change in changes:
            for entry in (change.old, change.new):
                if entry is None or entry.path is None:
                    continue
                rel = _decode(entry.path)
                if rel in local:
                    conflicts.append(rel)
            if change.type == CHANGE_ADD:
                rel = _decode(change.new.path)
                if (
                    _encode(rel) not in index
                    and os.path.lexists(to_absolute(self._root, rel))
                ):
                    untracked_conflicts.append(rel)

        if conflicts:
            files = "\n\t".join(sorted(set(conflicts)))
            raise CommandFailureError(
                "Your local changes to the following files would be overwritten "
                "by checkout",
                f"error: Your local changes to the following files would be "
                f"overwritten by checkout:\n\t{files}",
            )
        if untracked_conflicts:
            files = "\n\t".join(sorted(set(untracked_conflicts)))
            raise CommandFailureError(
                "The following untracked working tree files would be overwritten "
                "by checkout",
                f"error: The following untracked working tree files would be "
                f"overwritten by checkout:\n\t{files}",
            )

        honor_filemode = repo.get_config().get_boolean(
            b"core", b"filemode", os.name != "nt"
        )
        for change in changes:
            if change.type == CHANGE_DELETE or (
                change.new is not None and change.new.path is None
            ):
                rel = _decode(change.old.path)
                self._remove_worktree_file(rel)
                if _encode(rel) in index:
                    del index[_encode(rel)]
                continue

            entry = change.new
            rel = _decode(entry.path)
            if change.old is not None and change.old.path not in (None, entry.path):
                old_rel = _decode(change.old.path)
                self._remove_worktree_file(old_rel)
                if _encode(old_rel) in index:
                    del index[_encode(old_rel)]
            if S_ISGITLINK(entry.mode):
                continue
            full = to_absolute(self._root, rel)
            os.makedirs(os.path.dirname(full), exist_ok=True)
            if os.path.lexists(full) and not os.path.isdir(full):
                os.unlink(full)
            st = build_file_from_blob(
                repo[entry.sha],
                entry.mode,
                os.fsencode(full),
                honor_filemode=honor_filemode,
            )
            index[_encode(rel)] = index_entry_from_stat(st, entry.sha, mode=entry.mode)
        index.write()

    def _remove_worktree_file(self, rel: str) -> None:
        full = to_absolute(self._root, rel)
        if os.path.lexists(full):
            os.unlink(full)
        # Prune directories emptied by the removal
        parent = os.path.dirname(full)
        while parent != self._root and parent.startswith(self._root):
            try:
                os.rmdir(parent)
            except OSError:
                break
            parent = os.path.dirname(parent)

    # ------------------------------------------------------------------
    # Working tree queries
    # ------------------------------------------------------------------

    def is_ignored(self, path: str | os.PathLike[str]) -> bool:
        rel = self.relative(path)
        if not rel:
            return False
        with self._open() as repo:
            index = _open_index(repo)
            if _encode(rel) in index:
                return False
            manager = IgnoreFilterManager.from_repo(repo)
            probe = rel
            if os.path.isdir(to_absolute(self._root, rel)):
                probe = rel.rstrip("/") + "/"
            return bool(manager.is_ignored(probe))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _stage_file(self, repo: Repo, index: Index, rel: str) -> None:
        full = to_absolute(self._root, rel)
        st = os.lstat(full)
        if stat.S_ISDIR(st.st_mode):
            return
        blob = blob_from_path_and_stat(os.fsencode(full), st)
        repo.object_store.add_object(blob)
        index[_encode(rel)] = index_entry_from_stat(
            st, blob.id, mode=cleanup_mode(st.st_mode)
        )

    def _stage(self, repo: Repo, index: Index, rel: str) -> None:
        full = to_absolute(self._root, rel)
        key = _encode(rel)
        tracked = key in index
        if os.path.isdir(full) and not os.path.islink(full):
            prefix = rel.rstrip("/") + "/" if rel else ""
            for tracked_key in list(index):
                tracked_rel = _decode(tracked_key)
                if tracked_rel.startswith(prefix) and not os.path.lexists(
                    to_absolute(self._root, tracked_rel)
                ):
                    del index[tracked_key]
            for changed in self._unstaged_paths(index):
                if changed.startswith(prefix):
                    self._stage_file(repo, index, changed)
            for untracked in self._untracked_paths(index):
                if untracked.startswith(prefix):
                    self._stage_file(repo, index, untracked)
            return

        if not os.path.lexists(full):
            if tracked:
                del index[key]
                return
            raise CommandFailureError(
                f"pathspec '{rel}' did not match any files",
                command=["add", rel],
            )

        if not tracked:
            ignore = IgnoreFilterManager.from_repo(repo)
            if ignore.is_ignored(rel):
                raise CommandFailureError(
                    "The following paths are ignored by one of your .gitignore files",
                    rel,
                    command=["add", rel],
                )
        self._stage_file(repo, index, rel)

    def add(self, path: str | os.PathLike[str]) -> None:
        rel = self.relative(path)
        with self._open() as repo:
            index = _open_index(repo)
            self._stage(repo, index, rel)
            index.write()
        git_logger.debug("Staged path", path=rel, backend=self.name)

    def move_file(
        self, src: str | os.PathLike[str], dst: str | os.PathLike[str]
    ) -> None:
        rel_src = self.relative(src)
        rel_dst = self.relative(dst)
        full_src = to_absolute(self._root, rel_src)
        full_dst = to_absolute(self._root, rel_dst)
        if os.path.isdir(full_dst):
            # Moving into an existing directory keeps the base name
            rel_dst = posixpath.join(rel_dst, posixpath.basename(rel_src))
            full_dst = to_absolute(self._root, rel_dst)

        with self._open() as repo:
            index = _open_index(repo)
            src_key = _encode(rel_src)
            if src_key not in index:
                raise CommandFailureError(
                    f"not under version control, source={rel_src}, destination={rel_dst}",
                    command=["mv", rel_src, rel_dst],
                )
            if not os.path.lexists(full_src):
                raise CommandFailureError(
                    f"bad source, source={rel_src}, destination={rel_dst}",
                    command=["mv", rel_src, rel_dst],
                )
            if os.path.lexists(full_dst):
                raise CommandFailureError(
                    f"destination exists, source={rel_src}, destination={rel_dst}",
                    command=["mv", rel_src, rel_dst],
                )
            if not os.path.isdir(os.path.dirname(full_dst)):
                raise CommandFailureError(
                    f"destination directory does not exist, source={rel_src}, "
                    f"destination={rel_dst}",
                    command=["mv", rel_src, rel_dst],
                )

            os.rename(full_src, full_dst)
            entry = index[src_key]
            del index[src_key]
            index[_encode(rel_dst)] = entry
            index.write()
        git_logger.debug("Moved file", src=rel_src, dst=rel_dst, backend=self.name)

    def _commit(self, repo: Repo, message: str) -> str:
        if not message.endswith("\n"):
            message += "\n"
        sha = porcelain.commit(repo, message=message)
        return _decode(sha)

    def commit(self, message: str) -> None:
        with self._open() as repo:
            index = _open_index(repo)
            if not self._staged_changes(repo, index):
                raise NothingToCommitError(
                    "nothing to commit", command=["commit", "-m", message]
                )
            sha = self._commit(repo, message)
        git_logger.info("Committed", sha=sha[:8], backend=self.name)

    def create_initial_commit(self, message: str) -> None:
        with self._open() as repo:
            index = _open_index(repo)
            for rel in self._unstaged_paths(index):
                if os.path.lexists(to_absolute(self._root, rel)):
                    self._stage_file(repo, index, rel)
                else:
                    del index[_encode(rel)]
            for rel in self._untracked_paths(index):
                self._stage_file(repo, index, rel)
            index.write()

            if not self._staged_changes(repo, index):
                raise NothingToCommitError(
                    "no files to commit", command=["commit", "-m", message]
                )
            sha = self._commit(repo, message)
        git_logger.info("Created initial commit", sha=sha[:8], backend=self.name)
