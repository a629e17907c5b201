"""Collaborator protocol interfaces consumed by the engine."""

from typing import List, Optional, Protocol, runtime_checkable

from ..models import BlameSnapshot, Commit, DiffStat


@runtime_checkable
class RevisionLogProtocol(Protocol):
    """Supplies commits in ascending revision order."""

    def head_revision(self) -> int:
        """Newest revision available."""
        ...

    def get_commits(self, from_revision: int, to_revision: int) -> List[Commit]:
        """Commits with from_revision <= revision <= to_revision, ascending."""
        ...

    def author_of(self, revision: int) -> str:
        """Author of a revision."""
        ...


@runtime_checkable
class BlameProviderProtocol(Protocol):
    """Supplies immutable blame snapshots."""

    def get_blame_snapshot(self, path: str, revision: int) -> BlameSnapshot:
        """Blame of path at revision. Raises NotFoundError or VcsError."""
        ...

    def list_paths(self, revision: int) -> List[str]:
        """Every file present at revision."""
        ...


@runtime_checkable
class ComparisonProviderProtocol(Protocol):
    """Supplies zero-context comparisons between two file versions."""

    def get_comparison(
        self,
        path_a: Optional[str],
        revision_a: int,
        path_b: Optional[str],
        revision_b: int,
    ) -> DiffStat:
        """Compare (path_a, revision_a) to (path_b, revision_b).

        A ``None`` path stands for the empty side. Raises VcsError.
        """
        ...


@runtime_checkable
class RepositoryProtocol(
    RevisionLogProtocol, BlameProviderProtocol, ComparisonProviderProtocol, Protocol
):
    """A repository implementing every collaborator interface."""
