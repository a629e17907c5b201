"""Parsing of zero-context unified diff output into DiffStat objects."""

import re
from typing import Iterable, List

from ..errors import ParseError
from ..models import DiffStat, Hunk

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_BINARY_MARKERS = ("Binary files ", "GIT binary patch")


def parse_hunk_header(line: str) -> Hunk:
    """Parse a single ``@@ -a,b +c,d @@`` header line."""
    match = _HUNK_HEADER.match(line)
    if not match:
        raise ParseError(f"Malformed hunk header: {line!r}")
    old_start, old_count, new_start, new_count = match.groups()
    return Hunk(
        old_start=int(old_start),
        old_count=1 if old_count is None else int(old_count),
        new_start=int(new_start),
        new_count=1 if new_count is None else int(new_count),
    )


def parse_unified_diff(lines: Iterable[str]) -> DiffStat:
    """Build a DiffStat from unified diff text lines.

    Counts come from the ``+``/``-`` body lines and are cross-checked against
    the hunk headers.
    """
    hunks: List[Hunk] = []
    added = 0
    deleted = 0
    in_hunk = False

    for raw in lines:
        line = raw.rstrip("\n")
        if line.startswith(_BINARY_MARKERS):
            return DiffStat(is_binary=True)
        if line.startswith("@@"):
            hunks.append(parse_hunk_header(line))
            in_hunk = True
            continue
        if not in_hunk:
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            deleted += 1
        elif line.startswith("\\"):
            # "\ No newline at end of file"
            continue
        elif line.startswith("diff "):
            in_hunk = False

    expected_added = sum(hunk.new_count for hunk in hunks)
    expected_deleted = sum(hunk.old_count for hunk in hunks)
    if (added, deleted) != (expected_added, expected_deleted):
        raise ParseError(
            f"Hunk headers announce +{expected_added}/-{expected_deleted} "
            f"but the body has +{added}/-{deleted}"
        )
    return DiffStat(added=added, deleted=deleted, hunks=hunks)


def whole_file_stat(line_count: int, added: bool, is_binary: bool = False) -> DiffStat:
    """DiffStat of creating (``added``) or deleting a whole file."""
    if is_binary:
        return DiffStat(is_binary=True)
    if line_count == 0:
        return DiffStat()
    if added:
        return DiffStat(
            added=line_count,
            hunks=[Hunk(old_start=0, old_count=0, new_start=1, new_count=line_count)],
        )
    return DiffStat(
        deleted=line_count,
        hunks=[Hunk(old_start=1, old_count=line_count, new_start=0, new_count=0)],
    )
