"""Event model classes produced by the line history builder and hunk tracker."""

from typing import Annotated, Dict, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .vcs_models import Hunk


class Born(BaseModel):
    """A line created at ``revision``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["born"] = "born"
    file: str
    line_id: str
    revision: int
    author: str
    position: int


class Killed(BaseModel):
    """A line removed at ``kill_revision``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["killed"] = "killed"
    file: str
    line_id: str
    origin_revision: int
    origin_author: str
    kill_revision: int
    killer_author: str
    position: int


class Reattributed(BaseModel):
    """A line whose content survived but whose attribution or position changed.

    Equal origin revisions mark a pure relocation inside the file.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["reattributed"] = "reattributed"
    file: str
    line_id: str
    from_origin_revision: int
    to_origin_revision: int
    at_revision: int
    old_position: int
    new_position: int

    @property
    def is_move(self) -> bool:
        return self.from_origin_revision == self.to_origin_revision


LineEvent = Annotated[Union[Born, Killed, Reattributed], Field(discriminator="kind")]


class LineHistory(BaseModel):
    """Ordered line events of one file lineage."""

    model_config = ConfigDict(frozen=True)

    file: str
    paths: List[str]
    start_revision: int
    end_revision: int
    initial_line_count: int
    final_line_count: int
    inherited_line_count: int = 0
    deleted: bool = False
    events: List[LineEvent] = Field(default_factory=list)

    def count(self, kind: str) -> int:
        return sum(1 for event in self.events if event.kind == kind)


class CanonicalRange(BaseModel):
    """A line range in the coordinate space fixed at a file's first revision.

    Insertion ranges are zero-width: ``start == end`` is the canonical line
    after which the lines were inserted, and they only overlap ranges that
    contain that point.
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    insertion: bool = False

    def contains(self, point: int) -> bool:
        return self.start <= point <= self.end

    def overlaps(self, other: "CanonicalRange") -> bool:
        if self.insertion and other.insertion:
            return self.start == other.start
        if self.insertion:
            return other.contains(self.start)
        if other.insertion:
            return self.contains(other.start)
        return max(self.start, other.start) <= min(self.end, other.end)


class HunkEvent(BaseModel):
    """A hunk applied to a file, located in canonical coordinates."""

    model_config = ConfigDict(frozen=True)

    file: str
    revision: int
    author: str
    hunk: Hunk
    canonical_range: CanonicalRange


class RepeatedHunkEdit(BaseModel):
    """Two edits by the same author to the same canonical location."""

    model_config = ConfigDict(frozen=True)

    file: str
    author: str
    first_revision: int
    second_revision: int
    first_range: CanonicalRange
    second_range: CanonicalRange


class PingPong(BaseModel):
    """Edits A, B, A to one canonical location, attributed to A."""

    model_config = ConfigDict(frozen=True)

    file: str
    author: str
    opponent: str
    revisions: Tuple[int, int, int]
    ranges: Tuple[CanonicalRange, CanonicalRange, CanonicalRange]


class FileResult(BaseModel):
    """Finalized output of one file pipeline."""

    model_config = ConfigDict(frozen=True)

    line_history: LineHistory
    hunk_events: Dict[str, List[HunkEvent]] = Field(default_factory=dict)
    repeated_edits: List[RepeatedHunkEdit] = Field(default_factory=list)
    ping_pongs: List[PingPong] = Field(default_factory=list)

    @property
    def file(self) -> str:
        return self.line_history.file
