"""
Application Settings

Runtime configuration for the VIKAS assistant backend, loaded from
environment variables (prefix ``VIKAS_``) or a local ``.env`` file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Defaults ──────────────────────────────────────────────────────────────
DEFAULT_MODEL = "llama3.3"
DEFAULT_CATALOG_DIR = Path(__file__).resolve().parents[2] / "data" / "catalog"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Configuration for the assistant, LLM client and analytics store."""

    log_level: LogLevel = Field(default="INFO", description="Root logging level.")

    # LLM
    llm_enabled: bool = Field(
        default=True,
        description="Set to false to run on keyword rules only.",
    )
    llm_model: str = Field(default=DEFAULT_MODEL, description="Ollama model tag.")
    llm_host: Optional[str] = Field(
        default=None,
        description="Ollama host URL; the client default is used when unset.",
    )
    llm_timeout_seconds: float = Field(default=30.0, gt=0)
    llm_max_retries: int = Field(default=3, ge=1)
    llm_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base delay for exponential backoff between retries.",
    )
    llm_recheck_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Seconds before a failed model availability check is retried.",
    )

    # Sentiment
    escalate_threshold: float = Field(default=-0.5, ge=-1.0, le=1.0)

    # Analytics
    interaction_capacity: int = Field(default=10_000, ge=1)
    history_capacity: int = Field(default=1_000, ge=1)

    # Catalog
    catalog_dir: Path = Field(default=DEFAULT_CATALOG_DIR)

    model_config = SettingsConfigDict(
        env_prefix="VIKAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Build a fresh :class:`Settings` from the current environment."""
    return Settings()
