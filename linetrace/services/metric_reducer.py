"""Reduction of file results into per-author and per-file metrics.

Every tally is an integer count taken directly from line and hunk events.
Births and kills are joined by line id within one lineage, and the author of
the Born event is the origin author for the consumed, self-cancel and
cross-revert tallies, so ``self_cancel + cross_reverted == consumed`` holds
exactly.
"""

from collections import Counter, defaultdict
from typing import Dict, Iterable

from ..models import (
    AttributionReport,
    AuthorMetrics,
    BlameSnapshot,
    Born,
    FileMetrics,
    FileResult,
    Killed,
    Reattributed,
)


class MetricAccumulator:
    """Commutative, associative fold of FileResults and ownership snapshots."""

    def __init__(self):
        self._authors: Dict[str, Counter] = defaultdict(Counter)
        self._files: Dict[str, Counter] = defaultdict(Counter)
        self._file_ownership: Dict[str, Counter] = defaultdict(Counter)
        self._kill_matrix: Counter = Counter()

    def add_file(self, result: FileResult) -> "MetricAccumulator":
        history = result.line_history
        births: Dict[str, Born] = {}
        kills: Dict[str, Killed] = {}
        file_counts = self._files[result.file]

        for event in history.events:
            if isinstance(event, Born):
                births[event.line_id] = event
            elif isinstance(event, Killed):
                kills[event.line_id] = event
            elif isinstance(event, Reattributed):
                file_counts["reattributed"] += 1
                if event.is_move:
                    file_counts["internal_moves"] += 1

        for line_id, born in births.items():
            author_counts = self._authors[born.author]
            author_counts["born"] += 1
            file_counts["born"] += 1
            killed = kills.get(line_id)
            if killed is None:
                author_counts["survived"] += 1
                file_counts["survived"] += 1
                continue
            author_counts["consumed"] += 1
            file_counts["consumed"] += 1
            if killed.killer_author == born.author:
                author_counts["self_cancel"] += 1
                file_counts["self_cancel"] += 1
            else:
                author_counts["cross_reverted"] += 1
                file_counts["cross_reverted"] += 1
                self._authors[killed.killer_author]["kills_of_others"] += 1
            self._kill_matrix[(killed.killer_author, born.author)] += 1

        for line_id, killed in kills.items():
            if line_id not in births:
                self._authors[killed.killer_author]["legacy_killed"] += 1
                file_counts["legacy_killed"] += 1

        file_counts["killed"] += len(kills)
        file_counts["net_change"] += history.final_line_count - history.initial_line_count

        for repeat in result.repeated_edits:
            self._authors[repeat.author]["repeated_hunk_edits"] += 1
            file_counts["repeated_hunk_edits"] += 1
        for ping_pong in result.ping_pongs:
            self._authors[ping_pong.author]["ping_pongs"] += 1
            file_counts["ping_pongs"] += 1
        return self

    def add_ownership(self, snapshot: BlameSnapshot) -> "MetricAccumulator":
        """Count the lines of a final snapshot by origin author."""
        owners = self._file_ownership[snapshot.path]
        for line in snapshot.lines:
            owners[line.origin_author] += 1
            self._authors[line.origin_author]["ownership"] += 1
        return self

    def merge(self, other: "MetricAccumulator") -> "MetricAccumulator":
        """Return a new accumulator holding the tallies of both."""
        merged = MetricAccumulator()
        for source in (self, other):
            for author, counts in source._authors.items():
                merged._authors[author].update(counts)
            for file, counts in source._files.items():
                merged._files[file].update(counts)
            for file, counts in source._file_ownership.items():
                merged._file_ownership[file].update(counts)
            merged._kill_matrix.update(source._kill_matrix)
        return merged

    def finalize(self) -> AttributionReport:
        authors = {
            author: AuthorMetrics(author=author, **self._authors[author])
            for author in sorted(self._authors)
        }
        files = {
            file: FileMetrics(
                file=file,
                ownership=dict(sorted(self._file_ownership.get(file, Counter()).items())),
                **self._files.get(file, Counter()),
            )
            for file in sorted(set(self._files) | set(self._file_ownership))
        }
        kill_matrix: Dict[str, Dict[str, int]] = {}
        for (killer, origin), count in sorted(self._kill_matrix.items()):
            kill_matrix.setdefault(killer, {})[origin] = count
        return AttributionReport(authors=authors, files=files, kill_matrix=kill_matrix)


def reduce_results(
    results: Iterable[FileResult], ownership: Iterable[BlameSnapshot] = ()
) -> AttributionReport:
    accumulator = MetricAccumulator()
    for result in results:
        accumulator.add_file(result)
    for snapshot in ownership:
        accumulator.add_ownership(snapshot)
    return accumulator.finalize()

