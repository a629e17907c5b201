"""Planning of per-file pipelines from normalized commits.

A lineage follows the lines of one file through the analysed range,
including hand-offs across renames. Lineages share no state, so each can be
built independently and in parallel; inside a lineage the steps are in
ascending revision order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..errors import InputError
from ..models import DiffStat, PathAction
from .rename_normalizer import NormalizedCommit


class StepKind(str, Enum):
    """How a revision affects a lineage."""

    ALIGN = "align"
    RENAME = "rename"
    REPLACE_COPY = "replace_copy"
    DELETE = "delete"


class SeedKind(str, Enum):
    EMPTY = "empty"
    BLAME = "blame"


@dataclass(frozen=True)
class LineageSeed:
    """Where the initial snapshot of a lineage comes from."""

    kind: SeedKind
    path: str
    revision: int


@dataclass(frozen=True)
class LineageStep:
    revision: int
    author: str
    path: str
    kind: StepKind
    diff_stat: DiffStat
    copy_from_path: Optional[str] = None
    copy_from_revision: Optional[int] = None


@dataclass
class FileLineage:
    seed: LineageSeed
    steps: List[LineageStep] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        paths: List[str] = []
        for path in [self.seed.path] + [step.path for step in self.steps]:
            if path not in paths:
                paths.append(path)
        return paths

    @property
    def file(self) -> str:
        return self.steps[-1].path if self.steps else self.seed.path

    @property
    def start_revision(self) -> int:
        return self.steps[0].revision if self.steps else self.seed.revision

    @property
    def end_revision(self) -> int:
        return self.steps[-1].revision if self.steps else self.seed.revision

    @property
    def finished(self) -> bool:
        return bool(self.steps) and self.steps[-1].kind == StepKind.DELETE

    def add(self, step: LineageStep) -> None:
        if self.finished:
            raise InputError(
                f"{step.path} changes at r{step.revision} after its deletion",
                file=step.path,
                revision=step.revision,
            )
        if self.steps and step.revision <= self.steps[-1].revision:
            raise InputError(
                f"Revision r{step.revision} is not after r{self.steps[-1].revision}",
                file=step.path,
                revision=step.revision,
            )
        self.steps.append(step)


def plan_lineages(commits: Sequence[NormalizedCommit]) -> List[FileLineage]:
    """Group every changed path of ``commits`` into file lineages."""
    active: Dict[str, FileLineage] = {}
    finished: List[FileLineage] = []

    def existing(path: str, revision: int) -> FileLineage:
        lineage = active.get(path)
        if lineage is None:
            lineage = FileLineage(seed=LineageSeed(SeedKind.BLAME, path, revision - 1))
            active[path] = lineage
        return lineage

    for normalized in commits:
        commit = normalized.commit
        revision = commit.revision
        stats = normalized.diff_stats
        pairs = normalized.rename_pairs
        handled = set()

        # Detach every rename source before attaching targets so chains
        # (A→B, B→C) hand off the right lineage.
        sources: List[FileLineage] = []
        for pair in pairs:
            lineage = active.pop(pair.old_path, None)
            if lineage is None:
                lineage = FileLineage(
                    seed=LineageSeed(SeedKind.BLAME, pair.old_path, pair.copy_from_revision)
                )
            elif lineage.end_revision > pair.copy_from_revision:
                raise InputError(
                    f"Rename source {pair.old_path}@{pair.copy_from_revision} predates "
                    f"its last change at r{lineage.end_revision}",
                    file=pair.new_path,
                    revision=revision,
                )
            sources.append(lineage)
            handled.add(pair.old_path)

        replaced = {
            changed.path for changed in commit.changed_paths if changed.action == PathAction.REPLACE
        }
        for pair, lineage in zip(pairs, sources):
            displaced = active.pop(pair.new_path, None)
            if displaced is None and pair.new_path in replaced:
                displaced = FileLineage(
                    seed=LineageSeed(SeedKind.BLAME, pair.new_path, revision - 1)
                )
            if displaced is not None and pair.new_path not in handled:
                # The target path existed and is replaced by the renamed content.
                displaced.add(
                    LineageStep(
                        revision=revision,
                        author=commit.author,
                        path=pair.new_path,
                        kind=StepKind.DELETE,
                        diff_stat=DiffStat(),
                    )
                )
                finished.append(displaced)
            lineage.add(
                LineageStep(
                    revision=revision,
                    author=commit.author,
                    path=pair.new_path,
                    kind=StepKind.RENAME,
                    diff_stat=stats.get(pair.new_path, DiffStat()),
                )
            )
            active[pair.new_path] = lineage
            handled.add(pair.new_path)

        targets = {pair.new_path for pair in pairs}
        for changed in commit.changed_paths:
            path = changed.path
            # A rename source replaced in the same commit keeps its path with
            # new content; that content starts a lineage of its own.
            vacated = (
                changed.action == PathAction.REPLACE
                and path not in targets
                and normalized.rename_to(path) is not None
            )
            if path in handled and not vacated:
                continue
            stat = stats.get(path, DiffStat())
            if changed.has_copy_source:
                # Copy-seeded steps align against the copy source.
                stat = normalized.copy_stats.get(path, stat)
            step_args = dict(revision=revision, author=commit.author, path=path, diff_stat=stat)
            action = PathAction.ADD if vacated else changed.action

            if action == PathAction.ADD:
                if path in active:
                    raise InputError(f"{path} added while it exists", file=path, revision=revision)
                if changed.has_copy_source:
                    seed = LineageSeed(
                        SeedKind.BLAME, changed.copy_from_path, changed.copy_from_revision
                    )
                else:
                    seed = LineageSeed(SeedKind.EMPTY, path, revision - 1)
                lineage = FileLineage(seed=seed)
                lineage.add(LineageStep(kind=StepKind.ALIGN, **step_args))
                active[path] = lineage
            elif action == PathAction.MODIFY:
                existing(path, revision).add(LineageStep(kind=StepKind.ALIGN, **step_args))
            elif action == PathAction.REPLACE:
                lineage = existing(path, revision)
                if changed.has_copy_source:
                    lineage.add(
                        LineageStep(
                            kind=StepKind.REPLACE_COPY,
                            copy_from_path=changed.copy_from_path,
                            copy_from_revision=changed.copy_from_revision,
                            **step_args,
                        )
                    )
                else:
                    lineage.add(LineageStep(kind=StepKind.ALIGN, **step_args))
            elif action == PathAction.DELETE:
                lineage = existing(path, revision)
                lineage.add(LineageStep(kind=StepKind.DELETE, **step_args))
                finished.append(active.pop(path))

    lineages = finished + list(active.values())
    lineages.sort(
        key=lambda lineage: (
            lineage.file,
            lineage.start_revision,
            lineage.end_revision,
            lineage.seed.path,
        )
    )
    return lineages
