from typing import Optional

from fastapi import Depends

from linetrace.config.settings import Settings, get_settings
from linetrace.protocols.vcs_protocols import RepositoryProtocol
from linetrace.services.attribution_engine import AttributionEngine
from linetrace.services.repository_factory import create_repository_from_settings

_repository: Optional[RepositoryProtocol] = None


def get_repository(settings: Settings = Depends(get_settings)) -> RepositoryProtocol:
    """Get or create the repository; its request cache lives as long as the process."""
    global _repository
    if _repository is None:
        _repository = create_repository_from_settings(settings)
    return _repository


# The engine depends on the repository getter above
def get_engine(
    repository: RepositoryProtocol = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AttributionEngine:
    return AttributionEngine.from_settings(repository, settings)
