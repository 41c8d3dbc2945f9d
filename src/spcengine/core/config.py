"""Centralized engine settings using pydantic-settings.

All environment variable reads are consolidated here. Import
`get_settings` from this module rather than reading os.environ directly.
The values only provide defaults for the monitoring configs; every
computation still receives an explicit config object.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    All env vars are prefixed with SPCENGINE_ (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_prefix="SPCENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_format: Literal["console", "json"] = "console"
    log_level: str = "INFO"

    # EWMA defaults
    ewma_lambda: float = Field(default=0.2, gt=0.0, le=1.0)
    ewma_l: float = Field(default=3.0, gt=0.0)
    ewma_limit_mode: Literal["fixed", "time_varying"] = "time_varying"
    ewma_zone_sigma: Literal["process", "ewma"] = "process"

    # CUSUM defaults (k and h in sigma units)
    cusum_k: float = Field(default=0.5, ge=0.0)
    cusum_h: float = Field(default=5.0, gt=0.0)
    cusum_fast_initial_response: bool = False

    # Preprocessing
    smoothing_window: int = Field(default=5, ge=1)

    # Capability
    long_term_sigma_factor: float = Field(default=1.5, gt=0.0)


@lru_cache
def get_settings() -> Settings:
    """Return the cached engine settings singleton."""
    return Settings()
