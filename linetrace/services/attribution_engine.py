"""Coordinates normalization, per-file pipelines and metric reduction."""

import asyncio
import time
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..errors import EngineError, InputError, InternalError, StrictError, wrap_error
from ..logging import get_logger
from ..models import AnalysisResult, BlameSnapshot, Commit, FileResult, HunkEvent
from ..protocols.vcs_protocols import BlameProviderProtocol, RepositoryProtocol
from .hunk_tracker import CanonicalHunkTracker
from .line_history import LineHistoryBuilder
from .lineage_planner import FileLineage, SeedKind, StepKind, plan_lineages
from .metric_reducer import MetricAccumulator
from .rename_normalizer import DiffNormalizer, NormalizedCommit

logger = get_logger("attribution_engine")

T = TypeVar("T")


def run_file_pipeline(
    lineage: FileLineage,
    blame: BlameProviderProtocol,
    anchor_threshold: Optional[int] = None,
) -> FileResult:
    """Build the line history and hunk events of one lineage.

    Each path owns its own canonical space. A rename, a replacement by a
    copy or a binary revision starts a new space, and repeats and ping-pongs
    are only detected inside one space. A file created in range is canonical
    from its first content on.
    """
    history = LineHistoryBuilder(blame, anchor_threshold).build(lineage)

    hunk_events: Dict[str, List[HunkEvent]] = {}
    trackers: List[CanonicalHunkTracker] = []
    tracker: Optional[CanonicalHunkTracker] = None
    for index, step in enumerate(lineage.steps):
        restart = (
            tracker is None
            or tracker.path != step.path
            or step.kind in (StepKind.RENAME, StepKind.REPLACE_COPY)
            or step.diff_stat.is_binary
        )
        if restart:
            tracker = CanonicalHunkTracker(step.path)
            trackers.append(tracker)
        if step.diff_stat.is_binary:
            continue
        events = tracker.apply_revision(step.revision, step.author, step.diff_stat.hunks)
        hunk_events.setdefault(step.path, []).extend(events)
        if index == 0 and lineage.seed.kind == SeedKind.EMPTY:
            tracker = None

    repeated_edits = []
    ping_pongs = []
    for segment in trackers:
        repeats, pongs = segment.detect()
        repeated_edits.extend(repeats)
        ping_pongs.extend(pongs)

    return FileResult(
        line_history=history,
        hunk_events=hunk_events,
        repeated_edits=repeated_edits,
        ping_pongs=ping_pongs,
    )


async def _gather_fail_fast(awaitables: List[Awaitable[T]]) -> List[T]:
    """Await every awaitable; the first failure cancels the rest and is raised."""
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()


class AttributionEngine:
    """Runs the exact line attribution over a revision range."""

    def __init__(
        self,
        repository: RepositoryProtocol,
        anchor_threshold: Optional[int] = None,
        max_workers: int = 8,
    ):
        if max_workers < 1:
            raise InputError(f"max_workers must be positive, got {max_workers}")
        self.repository = repository
        self.anchor_threshold = anchor_threshold
        self.max_workers = max_workers
        self.normalizer = DiffNormalizer(repository)

    @classmethod
    def from_settings(cls, repository: RepositoryProtocol, settings) -> "AttributionEngine":
        return cls(
            repository,
            anchor_threshold=settings.ANCHOR_THRESHOLD,
            max_workers=settings.MAX_WORKERS,
        )

    async def analyze(
        self, from_revision: int = 1, to_revision: Optional[int] = None
    ) -> AnalysisResult:
        """Run the analysis and return its result; failures are raised."""
        result: Optional[AnalysisResult] = None
        async for event in self._run(from_revision, to_revision):
            if event["type"] == "complete":
                result = event["result"]
        if result is None:
            raise InternalError("Analysis finished without a result")
        return result

    async def analyze_stream(
        self, from_revision: int = 1, to_revision: Optional[int] = None
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """Run the analysis with streaming progress updates.

        The last event is either ``complete`` with the JSON result or a single
        ``error`` event carrying the failure category.
        """
        try:
            async for event in self._run(from_revision, to_revision):
                if event["type"] == "complete":
                    event = dict(event, result=event["result"].model_dump(mode="json"))
                yield event
        except Exception as exc:  # noqa: BLE001 - stream safety
            error = wrap_error(exc, operation="analyze")
            logger.error("Analysis failed: %s", error)
            yield {"type": "error", **error.to_dict()}

    async def _in_thread(
        self, semaphore: asyncio.Semaphore, func: Callable[..., T], *args: Any
    ) -> T:
        async with semaphore:
            return await asyncio.to_thread(func, *args)

    async def _run(
        self, from_revision: int, to_revision: Optional[int]
    ) -> AsyncGenerator[Dict[str, Any], None]:
        start_time = time.time()
        semaphore = asyncio.Semaphore(self.max_workers)

        yield {"type": "status", "message": "Reading revision log...", "progress": 0}
        head = await self._call(self.repository.head_revision, operation="head-revision")
        to_revision = head if to_revision is None else to_revision
        if from_revision < 1 or to_revision > head or from_revision > to_revision:
            raise InputError(
                f"Invalid revision range r{from_revision}..r{to_revision} (head is r{head})",
                operation="analyze",
            )
        commits = await self._call(
            self.repository.get_commits, from_revision, to_revision, operation="revision-log"
        )
        self._check_commits(commits, from_revision, to_revision)

        yield {
            "type": "status",
            "message": f"Normalizing {len(commits)} commits...",
            "progress": 10,
            "total_commits": len(commits),
        }
        normalized: List[NormalizedCommit] = await _gather_fail_fast(
            [self._normalize(semaphore, commit) for commit in commits]
        )

        lineages = plan_lineages(normalized)
        total_files = len(lineages)
        yield {
            "type": "status",
            "message": f"Found {total_files} file lineages to process",
            "progress": 20,
            "total_files": total_files,
        }

        accumulator = MetricAccumulator()
        results: List[FileResult] = []
        tasks = [
            asyncio.ensure_future(self._pipeline(semaphore, lineage)) for lineage in lineages
        ]
        try:
            for index, finished in enumerate(asyncio.as_completed(tasks), start=1):
                file_result = await finished
                accumulator.add_file(file_result)
                results.append(file_result)
                history = file_result.line_history
                yield {
                    "type": "file_complete",
                    "message": f"Processed: {history.file}",
                    "progress": 20 + (index / total_files) * 60,
                    "file_path": history.file,
                    "born": history.count("born"),
                    "killed": history.count("killed"),
                    "current_file": index,
                    "total_files": total_files,
                }
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        yield {"type": "status", "message": "Collecting ownership...", "progress": 85}
        paths = await self._call(
            self.repository.list_paths, to_revision, operation="list-paths"
        )
        snapshots: List[BlameSnapshot] = await _gather_fail_fast(
            [self._ownership(semaphore, path, to_revision) for path in paths]
        )
        for snapshot in snapshots:
            accumulator.add_ownership(snapshot)

        results.sort(
            key=lambda r: (r.file, r.line_history.start_revision, r.line_history.end_revision)
        )
        analysis = AnalysisResult(
            from_revision=from_revision,
            to_revision=to_revision,
            files=results,
            report=accumulator.finalize(),
        )
        total_time = time.time() - start_time
        logger.info(
            "Analysed r%d..r%d: %d files in %.2fs",
            from_revision,
            to_revision,
            len(results),
            total_time,
        )
        yield {
            "type": "complete",
            "message": f"Analysis complete! Processed {len(results)} files",
            "result": analysis,
            "total_time_seconds": round(total_time, 2),
            "progress": 100,
        }

    async def _call(self, func: Callable[..., T], *args: Any, operation: str) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except Exception as exc:
            raise wrap_error(exc, operation=operation) from exc

    @staticmethod
    def _check_commits(commits: List[Commit], from_revision: int, to_revision: int) -> None:
        previous = from_revision - 1
        for commit in commits:
            if commit.revision <= previous or commit.revision > to_revision:
                raise InputError(
                    f"Revision log is not ascending at r{commit.revision}",
                    revision=commit.revision,
                    operation="revision-log",
                )
            previous = commit.revision

    async def _normalize(self, semaphore: asyncio.Semaphore, commit: Commit) -> NormalizedCommit:
        try:
            return await self._in_thread(semaphore, self.normalizer.normalize, commit)
        except Exception as exc:
            raise wrap_error(exc, operation="normalize", revision=commit.revision) from exc

    async def _pipeline(self, semaphore: asyncio.Semaphore, lineage: FileLineage) -> FileResult:
        try:
            return await self._in_thread(
                semaphore, run_file_pipeline, lineage, self.repository, self.anchor_threshold
            )
        except Exception as exc:
            raise wrap_error(exc, operation="file-pipeline", file=lineage.file) from exc

    async def _ownership(
        self, semaphore: asyncio.Semaphore, path: str, revision: int
    ) -> BlameSnapshot:
        try:
            return await self._in_thread(
                semaphore, self.repository.get_blame_snapshot, path, revision
            )
        except EngineError as exc:
            raise StrictError(
                f"Ownership blame failed: {exc.message}",
                file=path,
                revision=revision,
                operation="ownership",
            ) from exc
        except Exception as exc:
            raise wrap_error(exc, operation="ownership", file=path, revision=revision) from exc
