"""Diff and rename normalization.

Raw per-file diff statistics represent a rename as a full delete of the old
path plus a full add of the new one. The normalizer detects rename pairs
from copy-from metadata and replaces those naive counts with a direct
comparison of the old and new content.
"""

from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..errors import EngineError, InputError, NotFoundError, ParseError
from ..logging import get_logger
from ..models import ChangedPath, Commit, DiffStat, PathAction, RenamePair
from ..protocols.vcs_protocols import ComparisonProviderProtocol

logger = get_logger("rename_normalizer")


class NormalizedCommit(BaseModel):
    """A commit with corrected per-file diff statistics.

    ``copy_stats`` holds, for plain copies (copy-from source kept), the
    comparison of the copy source with the new content. The commit's own
    ``diff_stats`` still count such a copy as a full addition.
    """

    model_config = ConfigDict(frozen=True)

    commit: Commit
    diff_stats: Dict[str, DiffStat] = Field(default_factory=dict)
    rename_pairs: List[RenamePair] = Field(default_factory=list)
    copy_stats: Dict[str, DiffStat] = Field(default_factory=dict)

    @property
    def revision(self) -> int:
        return self.commit.revision

    def rename_to(self, old_path: str) -> Optional[RenamePair]:
        for pair in self.rename_pairs:
            if pair.old_path == old_path:
                return pair
        return None


def _raw_sides(changed: ChangedPath, revision: int):
    if changed.action == PathAction.ADD:
        return None, revision - 1, changed.path, revision
    if changed.action == PathAction.DELETE:
        return changed.path, revision - 1, None, revision
    return changed.path, revision - 1, changed.path, revision


def collect_raw_diff_stats(
    commit: Commit, comparisons: ComparisonProviderProtocol
) -> Dict[str, DiffStat]:
    """Request the naive per-path DiffStat of every changed path."""
    stats: Dict[str, DiffStat] = {}
    for changed in commit.changed_paths:
        if changed.path in stats:
            raise InputError(
                f"Path {changed.path} listed twice in one commit",
                file=changed.path,
                revision=commit.revision,
            )
        path_a, revision_a, path_b, revision_b = _raw_sides(changed, commit.revision)
        try:
            stats[changed.path] = comparisons.get_comparison(
                path_a, revision_a, path_b, revision_b
            )
        except NotFoundError as exc:
            raise InputError(
                f"{changed.action.name} of {changed.path} is inconsistent with the repository: "
                f"{exc.message}",
                file=changed.path,
                revision=commit.revision,
                operation="raw-diff",
            ) from exc
        except EngineError as exc:
            raise ParseError(
                f"Raw comparison failed: {exc.message}",
                file=changed.path,
                revision=commit.revision,
                operation="raw-diff",
            ) from exc
    return stats


def detect_rename_pairs(commit: Commit) -> List[RenamePair]:
    """Pair copy-from additions with the deletion of their source.

    Pairs are resolved in the order the paths are listed; a source path is
    consumed by at most one pair, so ``A→B, B→C`` chains resolve pairwise.
    """
    leaving = {
        changed.path
        for changed in commit.changed_paths
        if changed.action in (PathAction.DELETE, PathAction.REPLACE)
    }
    consumed = set()
    pairs: List[RenamePair] = []
    for changed in commit.changed_paths:
        if changed.action not in (PathAction.ADD, PathAction.REPLACE):
            continue
        if not changed.has_copy_source:
            continue
        source = changed.copy_from_path
        if source == changed.path or source in consumed or source not in leaving:
            continue
        consumed.add(source)
        pairs.append(
            RenamePair(
                old_path=source,
                new_path=changed.path,
                copy_from_revision=changed.copy_from_revision,
                commit_revision=commit.revision,
            )
        )
    return pairs


def normalize_commit(
    commit: Commit,
    raw_stats: Dict[str, DiffStat],
    comparisons: ComparisonProviderProtocol,
) -> NormalizedCommit:
    """Replace naive rename counts with the real comparison counts."""
    pairs = detect_rename_pairs(commit)
    corrected = dict(raw_stats)
    targets = {pair.new_path for pair in pairs}

    for pair in pairs:
        old_raw = raw_stats.get(pair.old_path, DiffStat())
        new_raw = raw_stats.get(pair.new_path, DiffStat())
        if old_raw.is_binary or new_raw.is_binary:
            corrected[pair.new_path] = DiffStat(is_binary=True)
            continue
        try:
            corrected[pair.new_path] = comparisons.get_comparison(
                pair.old_path,
                pair.copy_from_revision,
                pair.new_path,
                pair.commit_revision,
            )
        except EngineError as exc:
            raise ParseError(
                f"Rename comparison {pair.old_path} -> {pair.new_path} failed: {exc.message}",
                file=pair.new_path,
                revision=commit.revision,
                operation="rename-correction",
            ) from exc
        logger.debug(
            "r%d rename %s -> %s: naive +%d/-%d, real +%d/-%d",
            commit.revision,
            pair.old_path,
            pair.new_path,
            new_raw.added,
            old_raw.deleted,
            corrected[pair.new_path].added,
            corrected[pair.new_path].deleted,
        )

    actions = {changed.path: changed.action for changed in commit.changed_paths}
    for pair in pairs:
        if pair.old_path in targets:
            continue
        if actions.get(pair.old_path) == PathAction.REPLACE:
            # The old lines left with the rename; what remains is new content.
            corrected[pair.old_path] = _vacated_stat(commit, pair.old_path, comparisons)
        else:
            binary = corrected.get(pair.new_path, DiffStat()).is_binary
            corrected[pair.old_path] = DiffStat(is_binary=binary)

    copy_stats = _copy_stats(commit, raw_stats, targets, comparisons)
    return NormalizedCommit(
        commit=commit, diff_stats=corrected, rename_pairs=pairs, copy_stats=copy_stats
    )


def _vacated_stat(
    commit: Commit, path: str, comparisons: ComparisonProviderProtocol
) -> DiffStat:
    try:
        return comparisons.get_comparison(None, commit.revision - 1, path, commit.revision)
    except EngineError as exc:
        raise ParseError(
            f"Comparison of the new content of {path} failed: {exc.message}",
            file=path,
            revision=commit.revision,
            operation="rename-correction",
        ) from exc


def _copy_stats(
    commit: Commit,
    raw_stats: Dict[str, DiffStat],
    targets: Set[str],
    comparisons: ComparisonProviderProtocol,
) -> Dict[str, DiffStat]:
    stats: Dict[str, DiffStat] = {}
    for changed in commit.changed_paths:
        if not changed.has_copy_source or changed.path in targets:
            continue
        if changed.action not in (PathAction.ADD, PathAction.REPLACE):
            continue
        if raw_stats.get(changed.path, DiffStat()).is_binary:
            stats[changed.path] = DiffStat(is_binary=True)
            continue
        try:
            stats[changed.path] = comparisons.get_comparison(
                changed.copy_from_path,
                changed.copy_from_revision,
                changed.path,
                commit.revision,
            )
        except EngineError as exc:
            raise ParseError(
                f"Copy comparison {changed.copy_from_path} -> {changed.path} failed: "
                f"{exc.message}",
                file=changed.path,
                revision=commit.revision,
                operation="copy-comparison",
            ) from exc
    return stats


class DiffNormalizer:
    """Collects raw diff statistics for a commit and normalizes renames."""

    def __init__(self, comparisons: ComparisonProviderProtocol):
        self.comparisons = comparisons

    def normalize(self, commit: Commit) -> NormalizedCommit:
        raw_stats = collect_raw_diff_stats(commit, self.comparisons)
        return normalize_commit(commit, raw_stats, self.comparisons)
