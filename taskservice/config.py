from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Task executor sizing
    task_core_pool_size: int = Field(5, ge=1)
    task_max_pool_size: int = Field(10, ge=1)
    task_queue_capacity: int = Field(50, ge=0)
    task_keep_alive_seconds: float = Field(60.0, gt=0)
    task_rejection_policy: Literal["abort", "caller_runs"] = "abort"
    task_thread_name_prefix: str = "task-"
    task_shutdown_interrupt: bool = False

    # Simulated work
    task_duration_seconds: float = Field(5.0, ge=0)

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Settings":
        if self.task_max_pool_size < self.task_core_pool_size:
            raise ValueError("task_max_pool_size must be >= task_core_pool_size")
        return self


settings = Settings()
