"""In-memory repository implementing every collaborator protocol.

Histories are recorded commit by commit; blame and zero-context diffs are
derived from the recorded contents with difflib. It ships inside the
package because DEBUG mode replays ``HISTORY_FIXTURE_PATH`` through it from
an installed engine; the test suite records its histories with it too.
"""

import difflib
import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import InputError, NotFoundError, VcsError
from ..logging import get_logger
from ..models import BlameLine, BlameSnapshot, ChangedPath, Commit, DiffStat, PathAction
from .unified_diff import parse_unified_diff

logger = get_logger("memory_repository")

Content = Union[str, Sequence[str], bytes]

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _FileState:
    """Content of one file at one revision with its per-line origins."""

    __slots__ = ("lines", "origins", "binary")

    def __init__(self, lines: List[str], origins: List[Tuple[int, str]], binary: bool = False):
        self.lines = lines
        self.origins = origins
        self.binary = binary


def _split_content(content: Content) -> Tuple[List[str], bool]:
    if isinstance(content, bytes):
        return content.decode("latin-1").split("\n"), True
    if isinstance(content, str):
        # Lines end at "\n" only, as in git.
        lines = content.split("\n")
        if lines[-1] == "":
            lines.pop()
        return lines, False
    return list(content), False


def _carry_origins(
    previous: Optional[_FileState], lines: List[str], revision: int, author: str
) -> List[Tuple[int, str]]:
    """Blame ``lines`` against ``previous``: equal blocks keep their origins."""
    if previous is None:
        return [(revision, author)] * len(lines)
    origins: List[Tuple[int, str]] = []
    matcher = difflib.SequenceMatcher(None, previous.lines, lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            origins.extend(previous.origins[i1:i2])
        else:
            origins.extend([(revision, author)] * (j2 - j1))
    return origins


class InMemoryRepository:
    """A scripted, linear history with derived blame."""

    def __init__(self):
        self._commits: List[Commit] = []
        # States are copied per revision; index 0 is the empty repository
        self._states: List[Dict[str, _FileState]] = [{}]
        self._lock = threading.Lock()
        self.requests: List[Tuple[str, Optional[str], int]] = []
        self.failures: Dict[Tuple[str, int], Exception] = {}

    # -- recording ---------------------------------------------------------

    def commit(
        self,
        author: str,
        changes: Optional[Mapping[str, Optional[Content]]] = None,
        renames: Optional[Mapping[str, str]] = None,
        copies: Optional[Mapping[str, str]] = None,
        replaces: Iterable[str] = (),
        message: str = "",
        timestamp: Optional[datetime] = None,
    ) -> int:
        """Record a commit and return its revision.

        ``changes`` maps paths to new content (``None`` deletes the path).
        ``renames`` and ``copies`` map new paths to their source path; a
        renamed path keeps the source content unless ``changes`` overrides it.
        ``replaces`` marks changed paths as replaced rather than modified.
        """
        changes = dict(changes or {})
        renames = dict(renames or {})
        copies = dict(copies or {})
        replaced = set(replaces)

        revision = len(self._commits) + 1
        previous = self._states[-1]
        state = dict(previous)
        changed: List[ChangedPath] = []

        for new_path, old_path in list(renames.items()) + list(copies.items()):
            if old_path not in previous:
                raise InputError(f"Copy source {old_path} does not exist", revision=revision)
            source = previous[old_path]
            content = changes.pop(new_path, None)
            if content is None:
                lines, binary = list(source.lines), source.binary
            else:
                lines, binary = _split_content(content)
            state[new_path] = _FileState(
                lines, _carry_origins(source, lines, revision, author), binary
            )
            action = PathAction.REPLACE if new_path in previous else PathAction.ADD
            changed.append(
                ChangedPath(
                    path=new_path,
                    action=action,
                    copy_from_path=old_path,
                    copy_from_revision=revision - 1,
                )
            )
            if new_path in renames and old_path not in renames and old_path not in changes:
                state.pop(old_path, None)
                changed.append(ChangedPath(path=old_path, action=PathAction.DELETE))

        for path, content in changes.items():
            if content is None:
                if path not in state:
                    raise InputError(f"Cannot delete missing path {path}", revision=revision)
                del state[path]
                changed.append(ChangedPath(path=path, action=PathAction.DELETE))
                continue
            lines, binary = _split_content(content)
            before = previous.get(path)
            if path in replaced:
                action = PathAction.REPLACE
                origins = [(revision, author)] * len(lines)
            else:
                action = PathAction.MODIFY if before is not None else PathAction.ADD
                origins = _carry_origins(before, lines, revision, author)
            state[path] = _FileState(lines, origins, binary)
            changed.append(ChangedPath(path=path, action=action))

        self._commits.append(
            Commit(
                revision=revision,
                author=author,
                timestamp=timestamp or _EPOCH + timedelta(hours=revision),
                message=message,
                changed_paths=changed,
            )
        )
        self._states.append(state)
        return revision

    def pad_to(self, revision: int, author: str = "nobody") -> None:
        """Record empty commits until ``revision`` is the next free revision."""
        while len(self._commits) + 1 < revision:
            self.commit(author, message="padding")

    # -- RevisionLogProtocol ----------------------------------------------

    def head_revision(self) -> int:
        return len(self._commits)

    def get_commits(self, from_revision: int, to_revision: int) -> List[Commit]:
        return [c for c in self._commits if from_revision <= c.revision <= to_revision]

    def author_of(self, revision: int) -> str:
        if not 1 <= revision <= len(self._commits):
            raise VcsError(f"Unknown revision {revision}", revision=revision)
        return self._commits[revision - 1].author

    # -- BlameProviderProtocol --------------------------------------------

    def get_blame_snapshot(self, path: str, revision: int) -> BlameSnapshot:
        self._record("blame", path, revision)
        state = self._file(path, revision)
        return BlameSnapshot(
            path=path,
            revision=revision,
            lines=[
                BlameLine(
                    line_number=number,
                    content=content,
                    origin_revision=origin[0],
                    origin_author=origin[1],
                )
                for number, (content, origin) in enumerate(
                    zip(state.lines, state.origins), start=1
                )
            ],
        )

    def list_paths(self, revision: int) -> List[str]:
        self._check_revision(revision)
        return sorted(self._states[revision])

    # -- ComparisonProviderProtocol ---------------------------------------

    def get_comparison(
        self,
        path_a: Optional[str],
        revision_a: int,
        path_b: Optional[str],
        revision_b: int,
    ) -> DiffStat:
        self._record("compare", f"{path_a}@{revision_a}:{path_b}@{revision_b}", revision_b)
        side_a = self._file(path_a, revision_a) if path_a else None
        side_b = self._file(path_b, revision_b) if path_b else None
        if (side_a and side_a.binary) or (side_b and side_b.binary):
            return DiffStat(is_binary=True)
        diff = difflib.unified_diff(
            side_a.lines if side_a else [],
            side_b.lines if side_b else [],
            lineterm="",
            n=0,
        )
        return parse_unified_diff(diff)

    # -- fixtures ----------------------------------------------------------

    @classmethod
    def from_fixture(cls, fixture_path: Union[str, Path]) -> "InMemoryRepository":
        """Load a recorded history from a JSON fixture.

        The fixture holds ``{"commits": [{"author", "message", "changes",
        "renames", "copies", "replaces"}, ...]}`` in revision order.
        """
        path = Path(fixture_path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise InputError(f"Cannot read history fixture {path}: {exc}") from exc

        repository = cls()
        for entry in data.get("commits", []):
            repository.commit(
                author=entry["author"],
                changes=entry.get("changes"),
                renames=entry.get("renames"),
                copies=entry.get("copies"),
                replaces=entry.get("replaces", ()),
                message=entry.get("message", ""),
            )
        logger.info("Loaded %d commits from %s", repository.head_revision(), path)
        return repository

    # -- helpers -----------------------------------------------------------

    def _record(self, operation: str, subject: Optional[str], revision: int) -> None:
        with self._lock:
            self.requests.append((operation, subject, revision))
        failure = self.failures.get((str(subject), revision))
        if failure is not None:
            raise failure

    def _check_revision(self, revision: int) -> None:
        if not 0 <= revision < len(self._states):
            raise VcsError(f"Unknown revision {revision}", revision=revision)

    def _file(self, path: str, revision: int) -> _FileState:
        self._check_revision(revision)
        state = self._states[revision].get(path)
        if state is None:
            raise NotFoundError(path, revision)
        return state
