"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── Databricks SQL warehouse ─────────────────────────
    databricks_host: str = ""
    databricks_token: str = ""
    warehouse_id: str = ""

    # ── Statement polling ────────────────────────────────
    poll_interval_seconds: float = 0.35
    poll_timeout_seconds: float = 15.0
    http_timeout_seconds: float = 30.0

    # ── Request contract ─────────────────────────────────
    default_max_month: str = "202512"

    # ── App ──────────────────────────────────────────────
    allowed_origins: list[str] = ["https://brickhouser3.github.io"]
    api_port: int = 8000
    log_level: str = "INFO"

    @property
    def has_credentials(self) -> bool:
        return bool(self.databricks_host and self.databricks_token and self.warehouse_id)


@lru_cache
def get_settings() -> Settings:
    return Settings()
