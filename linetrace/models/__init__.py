"""Models for the application."""

from .event_models import (
    Born,
    CanonicalRange,
    FileResult,
    HunkEvent,
    Killed,
    LineEvent,
    LineHistory,
    PingPong,
    Reattributed,
    RepeatedHunkEdit,
)
from .metric_models import AnalysisResult, AttributionReport, AuthorMetrics, FileMetrics, Ratio
from .vcs_models import (
    BlameLine,
    BlameSnapshot,
    ChangedPath,
    Commit,
    DiffStat,
    Hunk,
    PathAction,
    RenamePair,
)

__all__ = [
    "AnalysisResult",
    "AttributionReport",
    "AuthorMetrics",
    "BlameLine",
    "BlameSnapshot",
    "Born",
    "CanonicalRange",
    "ChangedPath",
    "Commit",
    "DiffStat",
    "FileMetrics",
    "FileResult",
    "Hunk",
    "HunkEvent",
    "Killed",
    "LineEvent",
    "LineHistory",
    "PathAction",
    "PingPong",
    "Ratio",
    "Reattributed",
    "RenamePair",
]
