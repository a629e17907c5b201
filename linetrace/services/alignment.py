"""Sequence alignment of consecutive blame snapshots.

Lines are matched by a longest-common-subsequence computation over their
content, weighted so that origin-stable pairs (same origin revision on both
sides) come first and the plain number of matches breaks ties. Pairs that
agree with blame therefore always survive, and identical lines such as a
lone ``}`` do not spuriously change attribution.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from ..errors import StrictError
from ..models import BlameLine, Hunk

Pair = Tuple[int, int]

MATCHED = "matched"
KILLED = "killed"
BORN = "born"


@dataclass
class AlignmentResult:
    """Partition of two snapshots; indices are 0-based."""

    prev_size: int
    curr_size: int
    matched: List[Pair] = field(default_factory=list)
    relocated: List[Pair] = field(default_factory=list)
    killed: List[int] = field(default_factory=list)
    born: List[int] = field(default_factory=list)
    orphans: List[int] = field(default_factory=list)

    def classify(self) -> Tuple[List[Optional[str]], List[Optional[str]]]:
        """Label every prev and curr line; unlabeled lines stay ``None``."""
        prev_labels: List[Optional[str]] = [None] * self.prev_size
        curr_labels: List[Optional[str]] = [None] * self.curr_size
        for prev_index, curr_index in self.matched + self.relocated:
            prev_labels[prev_index] = MATCHED
            curr_labels[curr_index] = MATCHED
        for prev_index in self.killed:
            prev_labels[prev_index] = KILLED
        for curr_index in self.born:
            curr_labels[curr_index] = BORN
        return prev_labels, curr_labels


class _Interner:
    """Maps line contents to small integers for fast comparison."""

    def __init__(self):
        self._ids: Dict[str, int] = {}

    def ids(self, lines: Sequence[BlameLine]) -> List[int]:
        result = []
        for line in lines:
            key = self._ids.get(line.content)
            if key is None:
                key = len(self._ids)
                self._ids[line.content] = key
            result.append(key)
        return result


def _lcs_span(
    prev: Sequence[BlameLine],
    curr: Sequence[BlameLine],
    prev_ids: List[int],
    curr_ids: List[int],
    p_lo: int,
    p_hi: int,
    c_lo: int,
    c_hi: int,
) -> List[Pair]:
    """Align ``prev[p_lo:p_hi]`` with ``curr[c_lo:c_hi]``."""
    head: List[Pair] = []
    while (
        p_lo < p_hi
        and c_lo < c_hi
        and prev_ids[p_lo] == curr_ids[c_lo]
        and prev[p_lo].origin_revision == curr[c_lo].origin_revision
    ):
        head.append((p_lo, c_lo))
        p_lo += 1
        c_lo += 1

    tail: List[Pair] = []
    while (
        p_lo < p_hi
        and c_lo < c_hi
        and prev_ids[p_hi - 1] == curr_ids[c_hi - 1]
        and prev[p_hi - 1].origin_revision == curr[c_hi - 1].origin_revision
    ):
        p_hi -= 1
        c_hi -= 1
        tail.append((p_hi, c_hi))
    tail.reverse()

    rows = p_hi - p_lo
    cols = c_hi - c_lo
    if rows == 0 or cols == 0:
        return head + tail

    # Score = stable matches * scale + matches, so blame-consistent pairs
    # always win and the number of matches only breaks ties.
    scale = min(rows, cols) + 1
    table = [[0] * (cols + 1) for _ in range(rows + 1)]
    for i in range(1, rows + 1):
        row = table[i]
        above = table[i - 1]
        p_key = prev_ids[p_lo + i - 1]
        p_origin = prev[p_lo + i - 1].origin_revision
        for j in range(1, cols + 1):
            best = above[j] if above[j] >= row[j - 1] else row[j - 1]
            if p_key == curr_ids[c_lo + j - 1]:
                weight = 1 + (scale if p_origin == curr[c_lo + j - 1].origin_revision else 0)
                diagonal = above[j - 1] + weight
                if diagonal > best:
                    best = diagonal
            row[j] = best

    middle: List[Pair] = []
    i, j = rows, cols
    while i > 0 and j > 0:
        p_index = p_lo + i - 1
        c_index = c_lo + j - 1
        if prev_ids[p_index] == curr_ids[c_index]:
            weight = 1 + (
                scale if prev[p_index].origin_revision == curr[c_index].origin_revision else 0
            )
            if table[i][j] == table[i - 1][j - 1] + weight:
                middle.append((p_index, c_index))
                i -= 1
                j -= 1
                continue
        if table[i - 1][j] >= table[i][j - 1]:
            i -= 1
        else:
            j -= 1
    middle.reverse()
    return head + middle + tail


def _anchored_pairs(
    prev: Sequence[BlameLine],
    curr: Sequence[BlameLine],
    prev_ids: List[int],
    curr_ids: List[int],
    hunks: Sequence[Hunk],
) -> List[Pair]:
    """Pair lines outside the hunks by offset and run LCS inside each hunk."""
    pairs: List[Pair] = []
    p_next = 0
    c_next = 0

    def anchor(count: int) -> None:
        nonlocal p_next, c_next
        for _ in range(count):
            if prev_ids[p_next] != curr_ids[c_next]:
                raise StrictError(
                    f"Unchanged line {p_next + 1} -> {c_next + 1} differs between snapshots"
                )
            pairs.append((p_next, c_next))
            p_next += 1
            c_next += 1

    for hunk in sorted(hunks, key=lambda h: h.old_start):
        # Zero-count sides sit after the given line.
        p_first = hunk.old_start - 1 if hunk.old_count else hunk.old_start
        c_first = hunk.new_start - 1 if hunk.new_count else hunk.new_start
        gap = p_first - p_next
        if gap < 0 or gap != c_first - c_next:
            raise StrictError(f"Hunk {hunk.model_dump()} does not fit the blame snapshots")
        anchor(gap)
        p_end = p_first + hunk.old_count
        c_end = c_first + hunk.new_count
        if p_end > len(prev) or c_end > len(curr):
            raise StrictError(f"Hunk {hunk.model_dump()} exceeds the blame snapshots")
        pairs.extend(_lcs_span(prev, curr, prev_ids, curr_ids, p_first, p_end, c_first, c_end))
        p_next, c_next = p_end, c_end

    if len(prev) - p_next != len(curr) - c_next:
        raise StrictError("Trailing unchanged block differs in length between snapshots")
    anchor(len(prev) - p_next)
    return pairs


def align_snapshots(
    prev: Sequence[BlameLine],
    curr: Sequence[BlameLine],
    revision: int,
    hunks: Optional[Sequence[Hunk]] = None,
    anchor_threshold: Optional[int] = None,
) -> AlignmentResult:
    """Partition ``prev`` and ``curr`` into matched, killed and born lines.

    ``hunks`` (old side relative to ``prev``) pre-anchor unchanged blocks
    when both snapshots exceed ``anchor_threshold`` lines. Unmatched lines of
    ``curr`` whose origin is older than ``revision`` are paired with an
    unmatched ``prev`` line of identical content and origin (a relocation);
    those without a partner are reported as orphans.
    """
    interner = _Interner()
    prev_ids = interner.ids(prev)
    curr_ids = interner.ids(curr)

    use_anchors = (
        hunks is not None
        and anchor_threshold is not None
        and len(prev) > anchor_threshold
        and len(curr) > anchor_threshold
    )
    if use_anchors:
        matched = _anchored_pairs(prev, curr, prev_ids, curr_ids, hunks)
    else:
        matched = _lcs_span(prev, curr, prev_ids, curr_ids, 0, len(prev), 0, len(curr))

    result = AlignmentResult(prev_size=len(prev), curr_size=len(curr), matched=matched)
    prev_taken = {p for p, _ in matched}
    curr_taken = {c for _, c in matched}

    candidates: Dict[Tuple[int, int], Deque[int]] = defaultdict(deque)
    for index, line in enumerate(prev):
        if index not in prev_taken:
            candidates[(prev_ids[index], line.origin_revision)].append(index)

    for index, line in enumerate(curr):
        if index in curr_taken or line.origin_revision == revision:
            continue
        bucket = candidates.get((curr_ids[index], line.origin_revision))
        if bucket:
            partner = bucket.popleft()
            result.relocated.append((partner, index))
            prev_taken.add(partner)
            curr_taken.add(index)
        else:
            result.orphans.append(index)

    result.killed = [index for index in range(len(prev)) if index not in prev_taken]
    result.born = [
        index
        for index in range(len(curr))
        if index not in curr_taken and curr[index].origin_revision == revision
    ]
    return result
