from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Target definitions (absolute or relative to CWD)
    targets_file: str = "targets.yaml"
    targets_local_file: str = "targets.local.yaml"  # optional override, deep-merged

    # Cycle
    refresh_interval_ms: int = 60_000  # used when targets.yaml doesn't set one
    default_timeout_ms: int = 5_000

    # SSH probe (seconds) — independent of per-target timeouts
    ssh_session_timeout: float = 15.0
    ssh_connect_timeout: int = 10

    # Logging
    log_level: str = "INFO"


settings = Settings()
