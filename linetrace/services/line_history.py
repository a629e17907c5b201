"""Line history construction for one file lineage."""

from enum import Enum
from typing import List, Optional

from ..errors import EngineError, InputError, NotFoundError, StrictError
from ..logging import get_logger
from ..models import BlameSnapshot, Born, Killed, LineEvent, LineHistory, Reattributed
from ..protocols.vcs_protocols import BlameProviderProtocol
from .alignment import align_snapshots
from .lineage_planner import FileLineage, LineageStep, SeedKind, StepKind

logger = get_logger("line_history")


class PipelineState(str, Enum):
    NOT_STARTED = "not_started"
    ALIGNING = "aligning"
    DONE = "done"


def born_line_id(path: str, revision: int, position: int) -> str:
    return f"{path}@{revision}#{position}"


def seeded_line_id(path: str, revision: int, position: int) -> str:
    return f"~{path}@{revision}#{position}"


class LineHistoryBuilder:
    """Replays the blame snapshots of a lineage and emits line events.

    Each step aligns the previous snapshot with the snapshot at the step's
    revision: unmatched previous lines are killed, unmatched new lines that
    originate at the revision are born, and matched lines whose origin
    changed (or that only moved) are reattributed.
    """

    def __init__(self, blame: BlameProviderProtocol, anchor_threshold: Optional[int] = None):
        self.blame = blame
        self.anchor_threshold = anchor_threshold
        self.state = PipelineState.NOT_STARTED

    def build(self, lineage: FileLineage) -> LineHistory:
        self.state = PipelineState.NOT_STARTED
        prev = self._seed(lineage)
        ids = [
            seeded_line_id(prev.path, prev.revision, line.line_number) for line in prev.lines
        ]
        initial_count = len(prev)
        inherited = 0
        deleted = False
        events: List[LineEvent] = []
        self.state = PipelineState.ALIGNING

        for index, step in enumerate(lineage.steps):
            if step.kind == StepKind.DELETE:
                if index != len(lineage.steps) - 1:
                    raise StrictError(
                        "Deleted file has later revisions", file=step.path, revision=step.revision
                    )
                events.extend(self._kill_all(prev, ids, step))
                prev = BlameSnapshot.empty(step.path, step.revision)
                ids = []
                deleted = True
                break

            if step.kind == StepKind.REPLACE_COPY:
                events.extend(self._kill_all(prev, ids, step))
                prev = self._fetch(step.copy_from_path, step.copy_from_revision, step)
                ids = [
                    seeded_line_id(prev.path, prev.revision, line.line_number)
                    for line in prev.lines
                ]
                inherited += len(prev)

            curr = self._fetch(step.path, step.revision, step)
            self._check_counts(prev, curr, step)
            step_events, ids = self._align(prev, curr, ids, step)
            events.extend(step_events)
            prev = curr

        self.state = PipelineState.DONE
        history = LineHistory(
            file=lineage.file,
            paths=lineage.paths,
            start_revision=lineage.start_revision,
            end_revision=lineage.end_revision,
            initial_line_count=initial_count,
            final_line_count=len(prev),
            inherited_line_count=inherited,
            deleted=deleted,
            events=events,
        )
        self._check_conservation(history)
        logger.debug(
            "%s: %d born, %d killed, %d reattributed over %d steps",
            history.file,
            history.count("born"),
            history.count("killed"),
            history.count("reattributed"),
            len(lineage.steps),
        )
        return history

    def _seed(self, lineage: FileLineage) -> BlameSnapshot:
        seed = lineage.seed
        if seed.kind == SeedKind.EMPTY:
            return BlameSnapshot.empty(seed.path, seed.revision)
        first = lineage.steps[0] if lineage.steps else None
        return self._fetch(seed.path, seed.revision, first, operation="seed")

    def _fetch(
        self,
        path: str,
        revision: int,
        step: Optional[LineageStep],
        operation: str = "blame",
    ) -> BlameSnapshot:
        try:
            return self.blame.get_blame_snapshot(path, revision)
        except NotFoundError as exc:
            raise InputError(
                f"No blame for {path}@{revision}: the path does not exist there",
                file=path,
                revision=revision,
                operation=operation,
            ) from exc
        except EngineError as exc:
            raise StrictError(
                f"Blame fetch failed: {exc.message}",
                file=path,
                revision=revision,
                operation=operation,
            ) from exc

    @staticmethod
    def _check_counts(prev: BlameSnapshot, curr: BlameSnapshot, step: LineageStep) -> None:
        stat = step.diff_stat
        if stat.is_binary:
            return
        if len(curr) - len(prev) != stat.added - stat.deleted:
            raise StrictError(
                f"Blame line count changed by {len(curr) - len(prev)} "
                f"but the diff reports +{stat.added}/-{stat.deleted}",
                file=step.path,
                revision=step.revision,
                operation="align",
            )

    @staticmethod
    def _kill_all(prev: BlameSnapshot, ids: List[str], step: LineageStep) -> List[LineEvent]:
        return [
            Killed(
                file=step.path,
                line_id=ids[index],
                origin_revision=line.origin_revision,
                origin_author=line.origin_author,
                kill_revision=step.revision,
                killer_author=step.author,
                position=line.line_number,
            )
            for index, line in enumerate(prev.lines)
        ]

    def _align(
        self,
        prev: BlameSnapshot,
        curr: BlameSnapshot,
        ids: List[str],
        step: LineageStep,
    ):
        stat = step.diff_stat
        result = align_snapshots(
            prev.lines,
            curr.lines,
            step.revision,
            hunks=None if stat.is_binary else stat.hunks,
            anchor_threshold=self.anchor_threshold,
        )
        if result.orphans:
            line = curr.lines[result.orphans[0]]
            raise StrictError(
                f"Line {line.line_number} is attributed to r{line.origin_revision} "
                f"but has no counterpart in the previous snapshot",
                file=step.path,
                revision=step.revision,
                operation="align",
            )

        events: List[LineEvent] = []
        curr_ids: List[Optional[str]] = [None] * len(curr)

        for prev_index in result.killed:
            line = prev.lines[prev_index]
            events.append(
                Killed(
                    file=step.path,
                    line_id=ids[prev_index],
                    origin_revision=line.origin_revision,
                    origin_author=line.origin_author,
                    kill_revision=step.revision,
                    killer_author=step.author,
                    position=line.line_number,
                )
            )

        for curr_index in result.born:
            line = curr.lines[curr_index]
            line_id = born_line_id(step.path, step.revision, line.line_number)
            curr_ids[curr_index] = line_id
            events.append(
                Born(
                    file=step.path,
                    line_id=line_id,
                    revision=step.revision,
                    author=step.author,
                    position=line.line_number,
                )
            )

        relocated = set(result.relocated)
        for prev_index, curr_index in sorted(
            result.matched + result.relocated, key=lambda pair: pair[1]
        ):
            curr_ids[curr_index] = ids[prev_index]
            before = prev.lines[prev_index]
            after = curr.lines[curr_index]
            if (prev_index, curr_index) in relocated or (
                before.origin_revision != after.origin_revision
            ):
                events.append(
                    Reattributed(
                        file=step.path,
                        line_id=ids[prev_index],
                        from_origin_revision=before.origin_revision,
                        to_origin_revision=after.origin_revision,
                        at_revision=step.revision,
                        old_position=before.line_number,
                        new_position=after.line_number,
                    )
                )

        if any(line_id is None for line_id in curr_ids):
            raise StrictError(
                "Alignment left lines unclassified",
                file=step.path,
                revision=step.revision,
                operation="align",
            )
        return events, curr_ids

    @staticmethod
    def _check_conservation(history: LineHistory) -> None:
        net = history.count("born") - history.count("killed") + history.inherited_line_count
        if net != history.final_line_count - history.initial_line_count:
            raise StrictError(
                f"Line conservation violated: born - killed = {net}, "
                f"line count changed by {history.final_line_count - history.initial_line_count}",
                file=history.file,
            )
