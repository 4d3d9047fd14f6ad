"""Parsing and classification of git CLI output.

Everything that depends on the exact wording of git's messages lives here so it
can be tested in isolation. The CLI is always run under the C locale (see
``plangit.platforms.english_locale_env``), which keeps these strings stable.
"""

from __future__ import annotations

from plangit.git.types import CommandResult, DiffStats, StatusEntry

# rev-parse HEAD in a repository without commits
EMPTY_HEAD_MARKERS = ("ambiguous argument", "unknown revision")
# A ref file whose contents are not an object id; git warns, then fails like
# an empty repository would
BROKEN_REF_MARKERS = ("ignoring broken ref",)
# symbolic-ref HEAD while detached
DETACHED_HEAD_MARKERS = ("not a symbolic ref",)
NOTHING_TO_COMMIT_MARKERS = (
    "nothing to commit",
    "nothing added to commit",
    "no changes added to commit",
)
NOT_A_REPOSITORY_MARKERS = ("not a git repository",)
UNSUPPORTED_REPOSITORY_MARKERS = (
    "unknown repository extension",
    "expected git repo version",
)
LOCAL_CHANGES_MARKERS = ("would be overwritten by checkout",)

RENAME_ARROW = " -> "

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "n": 0x0A,
    "r": 0x0D,
    "t": 0x09,
    "v": 0x0B,
    '"': 0x22,
    "\\": 0x5C,
}


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


def unquote_c_path(path: str) -> str:
    """Undo git's C-style quoting of a path (``"a\\tb"`` -> ``a<TAB>b``).

    Octal escapes are UTF-8 byte sequences; unquoted input is returned as-is.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in _C_ESCAPES:
            out.append(_C_ESCAPES[nxt])
            i += 2
        elif nxt.isdigit():
            digits = body[i + 1 : i + 4]
            out.append(int(digits, 8) & 0xFF)
            i += 1 + len(digits)
        else:
            out.extend(nxt.encode("utf-8"))
            i += 2
    return out.decode("utf-8", errors="surrogateescape")


def _split_rename(rest: str) -> tuple[str, str | None]:
    # Quoted names may legitimately contain the arrow text
    if rest.startswith('"'):
        end = _closing_quote(rest)
        if end != -1 and rest[end + 1 :].startswith(RENAME_ARROW):
            return rest[end + 1 + len(RENAME_ARROW) :], rest[: end + 1]
        return rest, None
    if RENAME_ARROW in rest:
        orig, new = rest.split(RENAME_ARROW, 1)
        return new, orig
    return rest, None


def _closing_quote(text: str) -> int:
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i
        i += 1
    return -1


def extract_porcelain_path(line: str) -> str:
    """Return the (post-rename) path of one ``git status --porcelain`` line."""
    if len(line) < 4:
        return ""
    new, _orig = _split_rename(line[3:])
    return unquote_c_path(new)


def parse_porcelain(output: str) -> list[StatusEntry]:
    """Parse ``git status --porcelain`` (v1) output into status entries."""
    entries: list[StatusEntry] = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        new, orig = _split_rename(line[3:])
        entries.append(
            StatusEntry(
                code=line[:2],
                path=unquote_c_path(new),
                orig_path=unquote_c_path(orig) if orig is not None else None,
            )
        )
    return entries


def parse_numstat(output: str) -> DiffStats:
    """Accumulate ``git diff --numstat`` records into DiffStats.

    Each record counts one file. Binary files report ``-`` for both counts and
    contribute to the file count only.
    """
    files = additions = deletions = 0
    for line in output.splitlines():
        fields = line.split("\t", 2)
        if len(fields) < 3:
            continue
        files += 1
        added, deleted = fields[0].strip(), fields[1].strip()
        if added == "-" or deleted == "-":
            continue
        try:
            additions += int(added)
            deletions += int(deleted)
        except ValueError:
            continue
    return DiffStats(files=files, additions=additions, deletions=deletions)


def is_empty_head(result: CommandResult) -> bool:
    """``rev-parse HEAD`` failed because the repository has no commits yet."""
    return (
        result.returncode == 128
        and _contains_any(result.stderr, EMPTY_HEAD_MARKERS)
        and not _contains_any(result.stderr, BROKEN_REF_MARKERS)
    )


def is_detached_head(result: CommandResult) -> bool:
    """``symbolic-ref HEAD`` failed because HEAD points at a commit."""
    return result.returncode != 0 and _contains_any(
        result.stderr, DETACHED_HEAD_MARKERS
    )


def is_nothing_to_commit(result: CommandResult) -> bool:
    return result.returncode != 0 and _contains_any(
        result.output, NOTHING_TO_COMMIT_MARKERS
    )


def is_not_a_repository(result: CommandResult) -> bool:
    return result.returncode != 0 and _contains_any(
        result.stderr, NOT_A_REPOSITORY_MARKERS
    )


def is_unsupported_repository(result: CommandResult) -> bool:
    return result.returncode != 0 and _contains_any(
        result.stderr, UNSUPPORTED_REPOSITORY_MARKERS
    )


def is_local_changes_conflict(result: CommandResult) -> bool:
    return result.returncode != 0 and _contains_any(
        result.output, LOCAL_CHANGES_MARKERS
    )
