"""Services for the application."""

from .alignment import AlignmentResult, align_snapshots
from .attribution_engine import AttributionEngine, run_file_pipeline
from .git_repository import GitRepository
from .hunk_tracker import (
    CanonicalHunkTracker,
    CanonicalOffsetMap,
    detect_ping_pongs,
    detect_repeated_edits,
)
from .line_history import LineHistoryBuilder, PipelineState
from .lineage_planner import FileLineage, plan_lineages
from .memory_repository import InMemoryRepository
from .metric_reducer import MetricAccumulator, reduce_results
from .rename_normalizer import DiffNormalizer, NormalizedCommit
from .repository_factory import create_repository, create_repository_from_settings
from .request_cache import RequestCache

__all__ = [
    "AlignmentResult",
    "AttributionEngine",
    "CanonicalHunkTracker",
    "CanonicalOffsetMap",
    "DiffNormalizer",
    "FileLineage",
    "GitRepository",
    "InMemoryRepository",
    "LineHistoryBuilder",
    "MetricAccumulator",
    "NormalizedCommit",
    "PipelineState",
    "RequestCache",
    "align_snapshots",
    "create_repository",
    "create_repository_from_settings",
    "detect_ping_pongs",
    "detect_repeated_edits",
    "plan_lineages",
    "reduce_results",
    "run_file_pipeline",
]
