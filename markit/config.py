"""Engine configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

STORAGE_KEY = "markit-notes"
AUTOSAVE_DELAY_MS = 2000


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "MARKIT_",
    }

    # Storage
    data_dir: Path = Path.home() / ".markit"
    storage_key: str = Field(STORAGE_KEY, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

    # Autosave
    autosave_delay_ms: int = AUTOSAVE_DELAY_MS
    switch_policy: Literal["flush", "discard"] = "flush"

    # Export
    export_dir: Path = Path("exports")

    # Logging
    log_level: str = "INFO"

    # MCP server
    server_host: str = "0.0.0.0"
    server_port: int = 8001


settings = Settings()
