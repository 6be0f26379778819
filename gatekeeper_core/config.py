"""
Gatekeeper Configuration

Settings are read from environment variables with the GATEKEEPER_ prefix
(or a .env file) using Pydantic BaseSettings.

Usage:
    from gatekeeper_core.config import get_settings, load_catalog, bootstrap_logging

    settings = get_settings()
    bootstrap_logging(settings)
    catalog = load_catalog(settings)
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .catalog import PermissionCatalog

logger = logging.getLogger(__name__)


class GatekeeperSettings(BaseSettings):
    """
    Configuration for permission resolution

    All settings can be overridden via environment variables with GATEKEEPER_ prefix.
    Example: GATEKEEPER_CATALOG_PATHS='["conf/modules.yaml", "conf/app.ini"]'
    """

    model_config = SettingsConfigDict(
        env_prefix="GATEKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # CATALOG SETTINGS
    # ============================================

    catalog_paths: list[Path] = Field(
        default_factory=list,
        description="Configuration layers applied after the core defaults, least specific first"
    )

    include_core_defaults: bool = Field(
        default=True,
        description="Start from the built-in permissions and roles"
    )

    # ============================================
    # DIAGNOSTICS
    # ============================================

    perms_explain: bool = Field(
        default=False,
        description="Enable PermissionResolver.explain() diagnostics"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Root logging format"
    )

    # ============================================
    # CREDENTIAL STORE
    # ============================================

    auth_db_path: Optional[Path] = Field(
        default=None,
        description="SQLite database holding the users table"
    )

    auth_table_prefix: str = Field(
        default="gatekeeper_",
        description="Prefix of the credential store tables"
    )

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level


# ============================================
# SINGLETON PATTERN
# ============================================

@lru_cache()
def get_settings() -> GatekeeperSettings:
    """
    Get cached settings instance (singleton pattern)

    Returns:
        GatekeeperSettings: Gatekeeper settings
    """
    return GatekeeperSettings()


def load_catalog(settings: Optional[GatekeeperSettings] = None) -> PermissionCatalog:
    """
    Load the permission catalog described by the settings.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        PermissionCatalog built from the core defaults plus catalog_paths

    Raises:
        ConfigError: if any layer is malformed
    """
    settings = settings or get_settings()
    return PermissionCatalog.load(
        settings.catalog_paths,
        include_core_defaults=settings.include_core_defaults,
    )


def bootstrap_logging(settings: Optional[GatekeeperSettings] = None) -> None:
    """Initialize root logging once using the configured level and format.

    Safe to call multiple times; subsequent calls are no-ops if the root
    logger already has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level), format=settings.log_format)
    logger.debug(f"Logging initialized at {settings.log_level}")


__all__ = [
    "GatekeeperSettings",
    "get_settings",
    "load_catalog",
    "bootstrap_logging",
]
