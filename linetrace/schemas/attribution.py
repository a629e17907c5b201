from typing import Optional, Tuple

from pydantic import BaseModel

from linetrace.config.settings import Settings


class AnalysisRequest(BaseModel):
    """Revision range to analyse; unset bounds fall back to the settings."""

    from_revision: Optional[int] = None
    to_revision: Optional[int] = None

    def resolve(self, settings: Settings) -> Tuple[int, Optional[int]]:
        from_revision = self.from_revision
        if from_revision is None:
            from_revision = settings.FROM_REVISION
        to_revision = self.to_revision
        if to_revision is None:
            to_revision = settings.TO_REVISION
        return from_revision, to_revision
