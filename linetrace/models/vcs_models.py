"""Version-control model classes: commits, paths, diffs and blame."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PathAction(str, Enum):
    """Action recorded for a path in a commit."""

    ADD = "A"
    MODIFY = "M"
    DELETE = "D"
    REPLACE = "R"


class ChangedPath(BaseModel):
    """A path touched by a commit."""

    model_config = ConfigDict(frozen=True)

    path: str
    action: PathAction
    copy_from_path: Optional[str] = None
    copy_from_revision: Optional[int] = None

    @model_validator(mode="after")
    def _check_copy_source(self) -> "ChangedPath":
        if (self.copy_from_path is None) != (self.copy_from_revision is None):
            raise ValueError("copy_from_path and copy_from_revision must be set together")
        return self

    @property
    def has_copy_source(self) -> bool:
        return self.copy_from_path is not None


class Commit(BaseModel):
    """One revision of the analysed history."""

    model_config = ConfigDict(frozen=True)

    revision: int
    author: str
    timestamp: datetime
    message: str = ""
    changed_paths: List[ChangedPath] = Field(default_factory=list)


class RenamePair(BaseModel):
    """A same-commit Delete + Add linked by copy-from metadata."""

    model_config = ConfigDict(frozen=True)

    old_path: str
    new_path: str
    copy_from_revision: int
    commit_revision: int


class Hunk(BaseModel):
    """One zero-context hunk header: ``@@ -old_start,old_count +new_start,new_count @@``."""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_count: int
    new_start: int
    new_count: int

    @property
    def old_end(self) -> int:
        """Last old line covered by the hunk (``old_start - 1`` for insertions)."""
        return self.old_start + self.old_count - 1

    @property
    def delta(self) -> int:
        return self.new_count - self.old_count


class DiffStat(BaseModel):
    """Line statistics and hunks for one (commit, file) or one comparison."""

    model_config = ConfigDict(frozen=True)

    added: int = 0
    deleted: int = 0
    hunks: List[Hunk] = Field(default_factory=list)
    is_binary: bool = False


class BlameLine(BaseModel):
    """One line of a blame snapshot."""

    model_config = ConfigDict(frozen=True)

    line_number: int
    content: str
    origin_revision: int
    origin_author: str


class BlameSnapshot(BaseModel):
    """Per-line attribution of a file at one revision."""

    model_config = ConfigDict(frozen=True)

    path: str
    revision: int
    lines: List[BlameLine] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_contiguous(self) -> "BlameSnapshot":
        for expected, line in enumerate(self.lines, start=1):
            if line.line_number != expected:
                raise ValueError(
                    f"blame of {self.path}@{self.revision} is not contiguous: "
                    f"line {line.line_number} at position {expected}"
                )
        return self

    def __len__(self) -> int:
        return len(self.lines)

    @classmethod
    def empty(cls, path: str, revision: int) -> "BlameSnapshot":
        return cls(path=path, revision=revision, lines=[])
