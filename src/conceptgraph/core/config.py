"""Configuration for conceptgraph using environment variables."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment Variables:
        CONCEPTGRAPH_DB_PATH: Path to the SQLite graph database (default: ./data/conceptgraph.db)
        CONCEPTGRAPH_LOG_LEVEL: Logging level (default: INFO)
        CONCEPTGRAPH_QUERY_TIMEOUT: Seconds a single store session may run (default: 5.0)
        CONCEPTGRAPH_MAX_PATH_DEPTH: Prerequisite hops followed when generating paths (default: 5)
        CONCEPTGRAPH_SUGGESTION_COUNT: Default number of suggested concepts (default: 5)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database Configuration
    db_path: Path = Field(
        default=Path("./data/conceptgraph.db"),
        validation_alias="CONCEPTGRAPH_DB_PATH",
        description="Path to SQLite graph database",
    )
    query_timeout: float = Field(
        default=5.0,
        gt=0,
        validation_alias="CONCEPTGRAPH_QUERY_TIMEOUT",
        description="Deadline in seconds for one store session",
    )

    # Graph behaviour
    max_path_depth: int = Field(
        default=5,
        ge=1,
        validation_alias="CONCEPTGRAPH_MAX_PATH_DEPTH",
        description="Maximum prerequisite hops followed from a goal concept",
    )
    suggestion_count: int = Field(
        default=5,
        ge=1,
        validation_alias="CONCEPTGRAPH_SUGGESTION_COUNT",
        description="Default number of next-concept suggestions",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        validation_alias="CONCEPTGRAPH_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
