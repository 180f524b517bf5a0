"""Application settings."""

from functools import lru_cache
import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "workflow-api"
    host: str = "0.0.0.0"
    port: int = 3000
    database_path: str = "workflow.db"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    default_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=60.0, ge=0.5)
    fetch_timeout_s: float = Field(default=10.0, ge=0.1)
    log_level: str = "INFO"
    openai_api_key: str = ""

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_API_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str) -> None:
    """Install a console handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(level.upper())
