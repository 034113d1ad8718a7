"""Application settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """taskpool configuration. All values come from environment variables."""

    # Worker pool
    task_pool_size: int = Field(default=20, ge=1)
    task_thread_name_prefix: str = Field(default="task-", min_length=1)
    task_await_termination_seconds: float = Field(default=60, ge=0)
    task_wait_for_tasks_on_shutdown: bool = Field(default=True)
    # None means unbounded
    task_queue_capacity: int | None = Field(default=None, ge=0)

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    # None means late runs always execute
    scheduler_misfire_grace_seconds: int | None = Field(default=None, ge=1)

    # Periodic pool statistics (0 disables)
    pool_stats_interval_seconds: int = Field(default=300, ge=0)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
