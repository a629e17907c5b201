"""Canonical hunk tracking.

Hunk positions drift as unrelated edits insert or remove lines elsewhere in a
file. The tracker keeps, per path, a map from the current local line numbers
to the line numbers of the path's first revision in range, so hunks of
different revisions can be compared in one coordinate space.
"""

from bisect import bisect_right
from typing import List, Optional, Sequence, Tuple

from ..errors import StrictError
from ..logging import get_logger
from ..models import CanonicalRange, Hunk, HunkEvent, PingPong, RepeatedHunkEdit

logger = get_logger("hunk_tracker")

# (local start, local end or None for unbounded, canonical start, canonical end or None)
Piece = Tuple[int, Optional[int], int, Optional[int]]


def _cut(hunk: Hunk) -> Tuple[int, int]:
    """First affected local line and first line that only shifts."""
    low = hunk.old_start if hunk.old_count else hunk.old_start + 1
    return low, low + hunk.old_count


class CanonicalOffsetMap:
    """Piecewise map from local line numbers to canonical line numbers.

    A piece maps local line ``L`` to ``canon_start + (L - start)``, clamped
    at ``canon_end``. Lines inserted by a hunk map into the canonical range
    of the hunk they belong to; pure insertions map to their insertion point.
    """

    def __init__(self):
        self._pieces: List[Piece] = [(1, None, 1, None)]

    @property
    def pieces(self) -> List[Piece]:
        return list(self._pieces)

    def to_canonical(self, line: int) -> int:
        if line < 1:
            return 0
        index = bisect_right([piece[0] for piece in self._pieces], line) - 1
        start, _, canon_start, canon_end = self._pieces[index]
        value = canon_start + (line - start)
        if canon_end is not None and value > canon_end:
            return canon_end
        return value

    def canonical_range(self, hunk: Hunk) -> CanonicalRange:
        if hunk.old_count == 0:
            point = self.to_canonical(hunk.old_start)
            return CanonicalRange(start=point, end=point, insertion=True)
        return CanonicalRange(
            start=self.to_canonical(hunk.old_start),
            end=self.to_canonical(hunk.old_start + hunk.old_count - 1),
        )

    def apply(self, hunk: Hunk, canonical: Optional[CanonicalRange] = None) -> None:
        """Apply one hunk; lines above it must not have changed since."""
        if canonical is None:
            canonical = self.canonical_range(hunk)
        low, high = _cut(hunk)
        shift = hunk.new_count - hunk.old_count

        below: List[Piece] = []
        above: List[Piece] = []
        for start, end, canon_start, canon_end in self._pieces:
            if start < low:
                below.append(
                    (start, low - 1 if end is None else min(end, low - 1), canon_start, canon_end)
                )
            if end is None or end >= high:
                first = max(start, high)
                above.append(
                    (
                        first + shift,
                        None if end is None else end + shift,
                        canon_start + (first - start),
                        canon_end,
                    )
                )

        region: List[Piece] = []
        if hunk.new_count:
            region.append((low, low + hunk.new_count - 1, canonical.start, canonical.end))
        self._pieces = below + region + above


def _validate(hunks: Sequence[Hunk], path: str, revision: int) -> List[Hunk]:
    ordered = sorted(hunks, key=lambda h: (_cut(h)[0], 1 if h.old_count else 0))
    expected_shift = 0
    previous_high = 1
    for hunk in ordered:
        low, high = _cut(hunk)
        if hunk.old_start < (1 if hunk.old_count else 0) or low < previous_high:
            raise StrictError(
                f"Hunk {hunk.model_dump()} overlaps an earlier hunk of the same revision",
                file=path,
                revision=revision,
                operation="hunk-tracking",
            )
        new_low = low + expected_shift
        expected_new_start = new_low if hunk.new_count else new_low - 1
        if hunk.new_start != expected_new_start:
            raise StrictError(
                f"Hunk {hunk.model_dump()} starts at new line {hunk.new_start}, "
                f"expected {expected_new_start}",
                file=path,
                revision=revision,
                operation="hunk-tracking",
            )
        expected_shift += hunk.new_count - hunk.old_count
        previous_high = high
    return ordered


class CanonicalHunkTracker:
    """Records the canonical location of every hunk applied to one path."""

    def __init__(self, path: str):
        self.path = path
        self.offset_map = CanonicalOffsetMap()
        self.events: List[HunkEvent] = []
        self.last_revision: Optional[int] = None

    def apply_revision(self, revision: int, author: str, hunks: Sequence[Hunk]) -> List[HunkEvent]:
        if self.last_revision is not None and revision <= self.last_revision:
            raise StrictError(
                f"Revision r{revision} applied after r{self.last_revision}",
                file=self.path,
                revision=revision,
                operation="hunk-tracking",
            )
        self.last_revision = revision
        ordered = _validate(hunks, self.path, revision)

        ranges = [self.offset_map.canonical_range(hunk) for hunk in ordered]
        # Bottom-up keeps every old_start valid in the current map.
        for hunk, canonical in reversed(list(zip(ordered, ranges))):
            self.offset_map.apply(hunk, canonical)

        events = [
            HunkEvent(
                file=self.path,
                revision=revision,
                author=author,
                hunk=hunk,
                canonical_range=canonical,
            )
            for hunk, canonical in zip(ordered, ranges)
        ]
        self.events.extend(events)
        return events

    def detect(self) -> Tuple[List[RepeatedHunkEdit], List[PingPong]]:
        return detect_repeated_edits(self.events), detect_ping_pongs(self.events)


def _in_order(events: Sequence[HunkEvent]) -> List[HunkEvent]:
    return sorted(events, key=lambda event: event.revision)


def detect_repeated_edits(events: Sequence[HunkEvent]) -> List[RepeatedHunkEdit]:
    """Same-author pairs of overlapping hunks.

    A pair is not a repeat when an overlapping edit by another author sits
    between the two; that sequence is reported as a ping-pong.
    """
    ordered = _in_order(events)
    repeats: List[RepeatedHunkEdit] = []
    for i, first in enumerate(ordered):
        for j in range(i + 1, len(ordered)):
            second = ordered[j]
            if second.revision <= first.revision or second.author != first.author:
                continue
            if not first.canonical_range.overlaps(second.canonical_range):
                continue
            interrupted = any(
                middle.author != first.author
                and first.revision < middle.revision < second.revision
                and middle.canonical_range.overlaps(first.canonical_range)
                and middle.canonical_range.overlaps(second.canonical_range)
                for middle in ordered[i + 1 : j]
            )
            if interrupted:
                continue
            repeats.append(
                RepeatedHunkEdit(
                    file=first.file,
                    author=first.author,
                    first_revision=first.revision,
                    second_revision=second.revision,
                    first_range=first.canonical_range,
                    second_range=second.canonical_range,
                )
            )
    return repeats


def detect_ping_pongs(events: Sequence[HunkEvent]) -> List[PingPong]:
    """Mutually overlapping A, B, A triples in strictly increasing revisions."""
    ordered = _in_order(events)
    found: List[PingPong] = []
    for i, first in enumerate(ordered):
        for j in range(i + 1, len(ordered)):
            middle = ordered[j]
            if middle.revision <= first.revision or middle.author == first.author:
                continue
            if not first.canonical_range.overlaps(middle.canonical_range):
                continue
            for k in range(j + 1, len(ordered)):
                last = ordered[k]
                if last.revision <= middle.revision or last.author != first.author:
                    continue
                if not (
                    last.canonical_range.overlaps(first.canonical_range)
                    and last.canonical_range.overlaps(middle.canonical_range)
                ):
                    continue
                found.append(
                    PingPong(
                        file=first.file,
                        author=first.author,
                        opponent=middle.author,
                        revisions=(first.revision, middle.revision, last.revision),
                        ranges=(
                            first.canonical_range,
                            middle.canonical_range,
                            last.canonical_range,
                        ),
                    )
                )
    if found:
        logger.debug("%s: %d ping-pong sequences", found[0].file, len(found))
    return found
