"""Factory for creating repository collaborators with DEBUG mode support."""

from ..config.settings import Settings
from ..logging import get_logger
from ..protocols.vcs_protocols import RepositoryProtocol
from .git_repository import GitRepository
from .memory_repository import InMemoryRepository

logger = get_logger("repository_factory")


def create_repository(
    repo_path: str,
    branch: str = "HEAD",
    debug_mode: bool = False,
    fixture_path: str = "./fixtures/history.json",
) -> RepositoryProtocol:
    """
    Create a repository collaborator based on debug mode.

    Args:
        repo_path: Path to the git working tree
        branch: Branch or ref whose first-parent chain is analysed
        debug_mode: If True, replays the recorded fixture history instead of git
        fixture_path: JSON history replayed in debug mode

    Returns:
        RepositoryProtocol implementation
    """
    if debug_mode:
        logger.info("DEBUG mode: replaying history from %s", fixture_path)
        return InMemoryRepository.from_fixture(fixture_path)
    logger.info("Using git repository at %s (%s)", repo_path, branch)
    return GitRepository(repo_path, branch=branch)


def create_repository_from_settings(settings: Settings) -> RepositoryProtocol:
    return create_repository(
        repo_path=settings.REPO_PATH,
        branch=settings.BRANCH,
        debug_mode=settings.DEBUG,
        fixture_path=settings.HISTORY_FIXTURE_PATH,
    )
