# presta_reports/settings.py
"""
Presta Reports Settings - PrestaShop webservice + PostgreSQL reporting tables.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # PrestaShop webservice
    # =========================================================================
    PRESTASHOP_API_URL: str = Field(default="", validation_alias="PRESTASHOP_API_URL")
    PRESTASHOP_API_TOKEN: str = Field(default="", validation_alias="PRESTASHOP_API_TOKEN")
    PRESTASHOP_TIMEOUT: float = Field(default=60.0, validation_alias="PRESTASHOP_TIMEOUT")
    PRESTASHOP_LANGUAGE: int = Field(default=1, validation_alias="PRESTASHOP_LANGUAGE")

    # Order states pulled into the sales report (PrestaShop filter syntax)
    SALES_ORDER_STATES: str = Field(default="2|3|4|5|11", validation_alias="SALES_ORDER_STATES")

    # =========================================================================
    # Scheduler
    # =========================================================================
    API_UPDATE_INTERVAL: int = Field(
        default=300_000,
        gt=0,
        le=86_400_000,
        validation_alias=AliasChoices("API_UPDATE_INTERVAL", "UPDATE_INTERVAL_MS"),
        description="Default poll period in milliseconds",
    )
    SYNC_ENABLED: bool = Field(default=True, validation_alias="SYNC_ENABLED")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DATABASE_URL: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="presta_reports", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")
    DB_SSL: bool = Field(default=False, validation_alias="DB_SSL")

    # =========================================================================
    # Logging / HTTP
    # =========================================================================
    LOG_DIR: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "logs"),
        validation_alias=AliasChoices("LOG_DIR", "PRESTA_REPORTS_LOG_DIR"),
    )
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], validation_alias="CORS_ORIGINS")
    HOST: str = Field(default="0.0.0.0", validation_alias="HOST")
    PORT: int = Field(default=3000, validation_alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
