"""
Configuration settings for the score updater.

Uses Pydantic Settings to load environment variables for database connections,
logging, and the batch update job (batch size, increment bound, fan-out limits).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

FailurePolicy = Literal["strict", "tolerant"]


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("user_manager", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(0, ge=0, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, ge=1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: Optional[int] = Field(None, ge=1, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Update job
    batch_size: int = Field(500, gt=0, alias="UPDATE_BATCH_SIZE")
    max_increment: int = Field(100, ge=0, alias="UPDATE_MAX_INCREMENT")
    max_concurrency: int = Field(8, gt=0, alias="UPDATE_MAX_CONCURRENCY")
    transform_concurrency: int = Field(4, gt=0, alias="UPDATE_TRANSFORM_CONCURRENCY")
    failure_policy: FailurePolicy = Field("strict", alias="UPDATE_FAILURE_POLICY")
    random_seed: Optional[int] = Field(None, alias="UPDATE_RANDOM_SEED")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def pool_max_size(self) -> int:
        """
        Effective pool ceiling: one connection per in-flight batch plus headroom
        for page reads and the count query.
        """
        if self.db_pool_max_size is not None:
            return self.db_pool_max_size
        return self.max_concurrency + 2


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["FailurePolicy", "Settings", "get_settings"]
