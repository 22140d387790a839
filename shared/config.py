"""
Type-safe configuration for the workflow builder using Pydantic Settings.

Values load from environment variables (prefixed ``WORKFLOW_BUILDER_``) and
an optional .env file.

Usage:
    from shared.config import config

    logger.setLevel(config.log_level)
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BuilderConfig(BaseSettings):
    """
    Central configuration for the workflow builder core and CLI.
    """
    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_BUILDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Console log level for builder loggers")

    # ============================================================================
    # Backend
    # ============================================================================

    api_base_url: str = Field(
        default="http://localhost:2000/api",
        description="Base URL of the workflow backend (publish, test and update endpoints)",
    )

    default_workflow_name: str = Field(
        default="Untitled Workflow",
        description="Name given to workflows created from the CLI without --name",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    def endpoint(self, path: str) -> str:
        """Join a backend path such as ``/workflows/create`` onto the base URL."""
        return f"{self.api_base_url.rstrip('/')}/{path.lstrip('/')}"


# ============================================================================
# Global Config Instance
# ============================================================================

config = BuilderConfig()
