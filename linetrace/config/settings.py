from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Values may also come from a ``.env`` file in the working directory.
    Revision bounds are first-parent ordinals for git repositories
    (1 is the root commit); an unset ``TO_REVISION`` means the head.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Repository to analyse
    REPO_PATH: str = "."
    BRANCH: str = "HEAD"
    FROM_REVISION: int = 1
    TO_REVISION: Optional[int] = None

    # Alignment: both snapshots above this size are pre-anchored by hunks
    ANCHOR_THRESHOLD: int = 2000
    # Upper bound on concurrently running per-file pipelines
    MAX_WORKERS: int = 8

    LOG_LEVEL: str = "INFO"

    # Development and debugging: replay a recorded history instead of git
    DEBUG: bool = False
    HISTORY_FIXTURE_PATH: str = "./fixtures/history.json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
