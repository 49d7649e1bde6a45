"""
Runtime configuration.

Values come from environment variables prefixed with ``STAKING_`` (or a local
``.env`` file). Reward percentages are not configurable; see ``constants``.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STAKING_", env_file=".env", extra="ignore")

    root_identity: str = Field(default="root", min_length=1)
    root_name: str = "root"
    owner_identity: str = Field(default="owner", min_length=1)

    # Starting balance of the in-memory pool used by the HTTP app
    pool_seed: int = Field(default=0, ge=0)

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
