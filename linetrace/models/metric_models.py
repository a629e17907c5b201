"""Aggregate metric model classes produced by the metric reducer."""

from fractions import Fraction
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .event_models import FileResult


class Ratio(BaseModel):
    """An exact ratio; undefined when the denominator is zero."""

    model_config = ConfigDict(frozen=True)

    numerator: int
    denominator: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def defined(self) -> bool:
        return self.denominator != 0

    @property
    def value(self) -> Optional[Fraction]:
        if self.denominator == 0:
            return None
        return Fraction(self.numerator, self.denominator)

    def __str__(self) -> str:
        value = self.value
        return "undefined" if value is None else str(value)


class AuthorMetrics(BaseModel):
    """Per-author aggregates over the analysed range."""

    model_config = ConfigDict(frozen=True)

    author: str
    born: int = 0
    survived: int = 0
    consumed: int = 0
    self_cancel: int = 0
    cross_reverted: int = 0
    kills_of_others: int = 0
    legacy_killed: int = 0
    ownership: int = 0
    repeated_hunk_edits: int = 0
    ping_pongs: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def survival_ratio(self) -> Ratio:
        return Ratio(numerator=self.survived, denominator=self.born)


class FileMetrics(BaseModel):
    """Per-file aggregates over the analysed range."""

    model_config = ConfigDict(frozen=True)

    file: str
    born: int = 0
    killed: int = 0
    survived: int = 0
    consumed: int = 0
    self_cancel: int = 0
    cross_reverted: int = 0
    legacy_killed: int = 0
    reattributed: int = 0
    internal_moves: int = 0
    net_change: int = 0
    repeated_hunk_edits: int = 0
    ping_pongs: int = 0
    ownership: Dict[str, int] = Field(default_factory=dict)


class AttributionReport(BaseModel):
    """Final reduction of every file pipeline and the ownership snapshot."""

    model_config = ConfigDict(frozen=True)

    authors: Dict[str, AuthorMetrics] = Field(default_factory=dict)
    files: Dict[str, FileMetrics] = Field(default_factory=dict)
    kill_matrix: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Everything the engine exposes for one revision range."""

    model_config = ConfigDict(frozen=True)

    from_revision: int
    to_revision: int
    files: List[FileResult] = Field(default_factory=list)
    report: AttributionReport
