"""
Configuration for hierarchy targeting.

Uses Pydantic for validation and environment variable loading.
Every setting has a clear purpose, sensible default, and validation.

Environment Variables:
    Repository:
    TARGETING_API_BASE_URL: Dashboard API root (default: http://localhost:5000/api)
    TARGETING_API_TOKEN: Bearer token sent with repository requests
    TARGETING_REQUEST_TIMEOUT_SECONDS: Per-fetch timeout (default: 10)
    TARGETING_PREFER_TREE_ENDPOINT: Try the pre-nested tree endpoint first (true/false)
    TARGETING_SNAPSHOT_PATH: DuckDB snapshot used by the offline repository

    Selector:
    TARGETING_DEFAULT_TAXONOMY: Taxonomy a fresh selector starts with (default: ORIGINAL)
    TARGETING_INCLUDE_NATIONAL_LEVEL: Start geographic chains at the national level
    TARGETING_AUTO_CONFIRM: Emit a descriptor when the confirm-at level is picked

    Logging:
    TARGETING_LOG_LEVEL: Log level - DEBUG, INFO, WARNING, ERROR (default: INFO)
    TARGETING_LOG_FORMAT: Log format - json or text (default: json)
    TARGETING_LOG_FILE: Log file path (logs to stderr if not set)
    TARGETING_SERVICE_NAME: Service name for log records
    TARGETING_ENVIRONMENT: Environment name (default: development)
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.taxonomy_models import TaxonomyKind

logger = logging.getLogger(__name__)


class RepositoryConfig(BaseSettings):
    """
    Configuration for taxonomy repositories.

    Environment variables use the TARGETING_ prefix (e.g., TARGETING_API_BASE_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="TARGETING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = Field(
        default="http://localhost:5000/api", min_length=1, description="Dashboard API root"
    )
    api_token: str | None = Field(default=None, description="Bearer token for API requests")
    request_timeout_seconds: float = Field(
        default=10.0, gt=0.0, le=120.0, description="Timeout applied to every repository fetch"
    )
    prefer_tree_endpoint: bool = Field(
        default=True, description="Try the pre-nested tree endpoint before flat listings"
    )
    snapshot_path: Path | None = Field(
        default=None, description="DuckDB snapshot for the offline repository"
    )

    @field_validator("api_base_url")
    @classmethod
    def check_base_url(cls, v: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("snapshot_path", mode="before")
    @classmethod
    def resolve_snapshot_path(cls, v: Any) -> Path | None:
        """Convert string paths to Path objects."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return Path(v)
        return v

    def to_dict(self) -> dict:
        """Convert config to dictionary for logging/debugging."""
        return {
            "api_base_url": self.api_base_url,
            "api_token": "[SET]" if self.api_token else None,
            "request_timeout_seconds": self.request_timeout_seconds,
            "prefer_tree_endpoint": self.prefer_tree_endpoint,
            "snapshot_path": str(self.snapshot_path) if self.snapshot_path else None,
        }


class SelectorConfig(BaseSettings):
    """
    Behaviour of the cascading selector.

    Environment variables use the TARGETING_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TARGETING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_taxonomy: TaxonomyKind = Field(
        default=TaxonomyKind.ORIGINAL, description="Taxonomy a fresh selector starts with"
    )
    include_national_level: bool = Field(
        default=False, description="Start ORIGINAL/SECTOR chains at the national level"
    )
    auto_confirm: bool = Field(
        default=True, description="Confirm automatically when the confirm-at level is picked"
    )

    @field_validator("default_taxonomy", mode="before")
    @classmethod
    def normalize_taxonomy(cls, v: Any) -> Any:
        """Accept lowercase taxonomy names from the environment."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def to_dict(self) -> dict:
        """Convert config to dictionary for logging/debugging."""
        return {
            "default_taxonomy": self.default_taxonomy.value,
            "include_national_level": self.include_national_level,
            "auto_confirm": self.auto_confirm,
        }


class LoggingConfig(BaseSettings):
    """
    Configuration for structured logging.

    Environment variables use the TARGETING_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TARGETING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for production, 'text' for development",
        pattern=r"^(json|text)$",
    )
    log_file: str | None = Field(
        default=None, description="Log file path (logs to stderr if not set)"
    )
    service_name: str = Field(
        default="hierarchy-targeting", description="Service name for log records"
    )
    environment: str = Field(
        default="development", description="Environment name (development, staging, production)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    def to_dict(self) -> dict:
        """Convert config to dictionary for logging/debugging."""
        return {
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_file": self.log_file,
            "service_name": self.service_name,
            "environment": self.environment,
        }


class AppConfig(BaseModel):
    """
    Combined configuration.

    Provides a single entry point for all configuration with validation.
    """

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    selector: SelectorConfig = Field(default_factory=SelectorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def check_default_taxonomy(self) -> "AppConfig":
        if self.selector.default_taxonomy == TaxonomyKind.GLOBAL:
            logger.warning("Selectors will start on GLOBAL; no roots are loaded until a switch")
        return self

    def validate_startup(self) -> list[str]:
        """
        Validate configuration for startup.

        Returns list of warnings (empty if all OK).
        Raises ConfigurationError for fatal issues.
        """
        from .core.errors import ConfigurationError

        warnings = []

        snapshot = self.repository.snapshot_path
        if snapshot is not None and snapshot.exists() and snapshot.is_dir():
            raise ConfigurationError(
                f"Snapshot path is a directory: {snapshot}", config_key="TARGETING_SNAPSHOT_PATH"
            )

        if not self.repository.api_token and self.repository.api_base_url.startswith("https://"):
            warnings.append("No API token configured; protected hierarchy endpoints will fail")

        if self.repository.request_timeout_seconds > 30:
            warnings.append(
                f"Fetch timeout of {self.repository.request_timeout_seconds}s keeps the "
                "selector waiting a long time on a dead endpoint"
            )

        return warnings

    def to_dict(self) -> dict:
        """Convert full config to dictionary."""
        return {
            "repository": self.repository.to_dict(),
            "selector": self.selector.to_dict(),
            "logging": self.logging.to_dict(),
        }


# Singleton instance management
_config_instance: AppConfig | None = None


def get_config() -> AppConfig:
    """
    Get the configuration singleton.

    Creates and validates config on first call.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = AppConfig()
        for warning in _config_instance.validate_startup():
            logger.warning(f"Configuration warning: {warning}")

    return _config_instance


def reset_config() -> None:
    """Reset the configuration singleton (tests, reloads)."""
    global _config_instance
    _config_instance = None


def get_repository_config() -> RepositoryConfig:
    """Get repository configuration (convenience function)."""
    return get_config().repository


def get_selector_config() -> SelectorConfig:
    """Get selector configuration (convenience function)."""
    return get_config().selector


def get_logging_config() -> LoggingConfig:
    """Get logging configuration (convenience function)."""
    return get_config().logging
