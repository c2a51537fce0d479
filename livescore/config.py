from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LIVESCORE_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # "*" allows every origin; otherwise an explicit allow-list
    allowed_origins: List[str] = ["*"]

    default_quarter_minutes: int = 10
    overtime_minutes: int = 5
    possession_seconds: int = 12
    tick_interval: float = 1.0

    name_max_length: int = 32
    default_team_a: str = "TEAM A"
    default_team_b: str = "TEAM B"


@lru_cache()
def get_settings():
    return Settings()
