"""Configuration for the workflow automation service.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Settings for the engine, CLI and REST server.

    Environment variables:
    - LOG_LEVEL                       (optional)
    - WORKFLOW_STATE_PATH             (optional)
    - WORKFLOW_HTTP_TIMEOUT_SECONDS   (optional)
    - WORKFLOW_MAX_DELAY_SECONDS      (optional)
    - WORKFLOW_CORS_ORIGINS           (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    state_path: Path = Field(
        default=Path("workflow_state"),
        validation_alias="WORKFLOW_STATE_PATH",
        description="Directory where workflow definitions and executions are persisted",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        validation_alias="WORKFLOW_HTTP_TIMEOUT_SECONDS",
        description="Timeout for the built-in http_request action",
    )

    max_delay_seconds: float = Field(
        default=300.0,
        ge=0,
        validation_alias="WORKFLOW_MAX_DELAY_SECONDS",
        description="Upper bound applied to the built-in delay action",
    )

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="WORKFLOW_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def workflows_file(self) -> Path:
        """Path where workflow definitions are persisted."""

        return self.state_path / "workflows.json"

    @property
    def executions_file(self) -> Path:
        """Path where execution records are persisted."""

        return self.state_path / "executions.json"

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
