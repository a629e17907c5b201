import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..errors import InputError, NotFoundError, VcsError
from ..logging import get_logger
from ..models import BlameLine, BlameSnapshot, ChangedPath, Commit, DiffStat, PathAction
from .request_cache import RequestCache, request_key
from .unified_diff import parse_unified_diff, whole_file_stat

logger = get_logger("git_repository")

# Git treats a blob as binary when a NUL byte appears in its first 8000 bytes.
_BINARY_SNIFF_BYTES = 8000


def _decode(line) -> str:
    if isinstance(line, bytes):
        return line.decode("utf-8", errors="surrogateescape")
    return line


def _count_lines(data: bytes) -> int:
    if not data:
        return 0
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


class GitRepository:
    """Git repository exposed through the collaborator protocols.

    Commits on the first-parent chain of ``branch`` are numbered from 1
    (the root commit); revision 0 is the empty state before the root.
    Every lookup is memoized in a RequestCache because revisions are
    immutable.
    """

    def __init__(self, repo_path: str, branch: str = "HEAD"):
        self.repo_path = Path(repo_path)
        self.branch = branch
        self.repo: Optional[Repo] = None
        self._shas: List[str] = []
        self._ordinals: Dict[str, int] = {}
        self._cache = RequestCache()
        self._setup_lock = threading.Lock()

    def setup_repository(self) -> None:
        """Open the repository and index its first-parent history."""
        with self._setup_lock:
            if self.repo is not None:
                return
            try:
                repo = Repo(self.repo_path)
                commits = list(repo.iter_commits(self.branch, first_parent=True, reverse=True))
            except (InvalidGitRepositoryError, NoSuchPathError) as exc:
                raise InputError(f"Not a git repository: {self.repo_path}") from exc
            except GitCommandError as exc:
                raise VcsError(f"Failed to read history of {self.branch}: {exc}") from exc

            self._shas = [commit.hexsha for commit in commits]
            self._ordinals = {sha: index for index, sha in enumerate(self._shas, start=1)}
            self.repo = repo
            logger.info(
                "Indexed %d first-parent commits of %s in %s",
                len(self._shas),
                self.branch,
                self.repo_path,
            )

    @property
    def cache(self) -> RequestCache:
        return self._cache

    # -- RevisionLogProtocol ----------------------------------------------

    def head_revision(self) -> int:
        self._require_repo()
        return len(self._shas)

    def get_commits(self, from_revision: int, to_revision: int) -> List[Commit]:
        self._require_repo()
        first = max(from_revision, 1)
        last = min(to_revision, len(self._shas))
        return [
            self._cache.get_or_fetch(
                request_key("commit", revision), lambda r=revision: self._commit(r)
            )
            for revision in range(first, last + 1)
        ]

    def author_of(self, revision: int) -> str:
        return self._cache.get_or_fetch(
            request_key("author", revision), lambda: self._git_commit(revision).author.name
        )

    def revision_of(self, sha: str) -> int:
        self._require_repo()
        try:
            return self._ordinals[sha]
        except KeyError:
            raise VcsError(f"Commit {sha} is not on the first-parent chain") from None

    # -- BlameProviderProtocol --------------------------------------------

    def get_blame_snapshot(self, path: str, revision: int) -> BlameSnapshot:
        return self._cache.get_or_fetch(
            request_key("blame", path, revision), lambda: self._blame(path, revision)
        )

    def list_paths(self, revision: int) -> List[str]:
        return self._cache.get_or_fetch(
            request_key("paths", revision), lambda: self._list_paths(revision)
        )

    # -- ComparisonProviderProtocol ---------------------------------------

    def get_comparison(
        self,
        path_a: Optional[str],
        revision_a: int,
        path_b: Optional[str],
        revision_b: int,
    ) -> DiffStat:
        return self._cache.get_or_fetch(
            request_key("compare", path_a, revision_a, path_b, revision_b),
            lambda: self._compare(path_a, revision_a, path_b, revision_b),
        )

    # -- internals ---------------------------------------------------------

    def _require_repo(self) -> Repo:
        if self.repo is None:
            self.setup_repository()
        return self.repo

    def _git_commit(self, revision: int):
        repo = self._require_repo()
        if not 1 <= revision <= len(self._shas):
            raise VcsError(f"Unknown revision {revision}", revision=revision)
        return repo.commit(self._shas[revision - 1])

    def _commit(self, revision: int) -> Commit:
        git_commit = self._git_commit(revision)
        changed: List[ChangedPath] = []
        if not git_commit.parents:
            # Root commit: every blob of its tree is an addition.
            changed = [
                ChangedPath(path=item.path, action=PathAction.ADD)
                for item in git_commit.tree.traverse()
                if item.type == "blob"
            ]
            diff_index = []
        else:
            try:
                diff_index = git_commit.parents[0].diff(git_commit)
            except GitCommandError as exc:
                raise VcsError(f"Failed to list changes: {exc}", revision=revision) from exc

        for item in diff_index:
            change_type = item.change_type
            if change_type == "A":
                changed.append(ChangedPath(path=item.b_path, action=PathAction.ADD))
            elif change_type == "D":
                changed.append(ChangedPath(path=item.a_path, action=PathAction.DELETE))
            elif change_type == "M":
                changed.append(ChangedPath(path=item.b_path, action=PathAction.MODIFY))
            elif change_type == "T":
                changed.append(ChangedPath(path=item.b_path, action=PathAction.REPLACE))
            elif change_type == "R":
                changed.append(
                    ChangedPath(
                        path=item.rename_to,
                        action=PathAction.ADD,
                        copy_from_path=item.rename_from,
                        copy_from_revision=revision - 1,
                    )
                )
                changed.append(ChangedPath(path=item.rename_from, action=PathAction.DELETE))
            else:
                raise VcsError(
                    f"Unsupported change type {change_type!r} for {item.b_path or item.a_path}",
                    revision=revision,
                )

        return Commit(
            revision=revision,
            author=git_commit.author.name,
            timestamp=git_commit.authored_datetime,
            message=git_commit.message,
            changed_paths=changed,
        )

    def _blob(self, path: str, revision: int):
        git_commit = self._git_commit(revision) if revision > 0 else None
        if git_commit is None:
            raise NotFoundError(path, revision)
        try:
            blob = git_commit.tree / path
        except KeyError:
            raise NotFoundError(path, revision) from None
        if blob.type != "blob":
            raise NotFoundError(path, revision)
        return blob

    def _blame(self, path: str, revision: int) -> BlameSnapshot:
        self._blob(path, revision)
        sha = self._shas[revision - 1]
        try:
            entries = self.repo.blame(sha, path, first_parent=True) or []
        except GitCommandError as exc:
            raise VcsError(f"git blame failed: {exc}", file=path, revision=revision) from exc

        lines: List[BlameLine] = []
        for git_commit, chunk in entries:
            origin = self.revision_of(git_commit.hexsha)
            author = git_commit.author.name
            for content in chunk:
                lines.append(
                    BlameLine(
                        line_number=len(lines) + 1,
                        content=_decode(content),
                        origin_revision=origin,
                        origin_author=author,
                    )
                )
        return BlameSnapshot(path=path, revision=revision, lines=lines)

    def _list_paths(self, revision: int) -> List[str]:
        if revision == 0:
            return []
        tree = self._git_commit(revision).tree
        return sorted(item.path for item in tree.traverse() if item.type == "blob")

    def _read(self, path: Optional[str], revision: int) -> Optional[Tuple[object, bytes]]:
        if path is None:
            return None
        blob = self._blob(path, revision)
        return blob, blob.data_stream.read()

    def _compare(
        self,
        path_a: Optional[str],
        revision_a: int,
        path_b: Optional[str],
        revision_b: int,
    ) -> DiffStat:
        side_a = self._read(path_a, revision_a)
        side_b = self._read(path_b, revision_b)
        if side_a is None and side_b is None:
            return DiffStat()

        binary = any(
            b"\0" in side[1][:_BINARY_SNIFF_BYTES] for side in (side_a, side_b) if side
        )
        if side_a is None:
            return whole_file_stat(_count_lines(side_b[1]), added=True, is_binary=binary)
        if side_b is None:
            return whole_file_stat(_count_lines(side_a[1]), added=False, is_binary=binary)
        if binary:
            return DiffStat(is_binary=True)
        if side_a[0].hexsha == side_b[0].hexsha:
            return DiffStat()

        try:
            output = self.repo.git.diff(
                "--unified=0",
                "--no-color",
                "--no-ext-diff",
                side_a[0].hexsha,
                side_b[0].hexsha,
            )
        except GitCommandError as exc:
            raise VcsError(
                f"git diff failed: {exc}", file=path_b or path_a, revision=revision_b
            ) from exc
        return parse_unified_diff(output.split("\n"))
