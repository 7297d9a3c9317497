"""Runtime settings for dataroom, read from DATAROOM_* env vars or a .env file."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dataroom.remote.retry import RetryPolicy

_ENV_PATH = os.getenv("DATAROOM_ENV", ".env")


class DataRoomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DATAROOM_",
        env_file=_ENV_PATH,
        extra="ignore",
    )

    # Timeouts in seconds; a subtree fetch is expected to be smaller than a refresh.
    refresh_timeout: float = Field(default=30.0, gt=0)
    subtree_timeout: float = Field(default=15.0, gt=0)

    retry_max_attempts: int = Field(default=2, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)

    idle_refresh_threshold: float = Field(default=60.0, ge=0)

    progress_tick_interval: float = Field(default=0.2, gt=0)
    progress_tick_fraction: float = Field(default=0.05, gt=0, le=1)
    progress_estimate_cap: float = Field(default=0.9, gt=0, le=1)

    signed_url_expiry: int = Field(default=3600, gt=0)

    drive_bucket_folder_id: Optional[str] = None
    drive_credentials_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_timeouts(self) -> "DataRoomSettings":
        if self.subtree_timeout > self.refresh_timeout:
            raise ValueError("subtree_timeout must not exceed refresh_timeout")
        return self

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
        )
