"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
Every settings class reads its own environment variables, and several fields accept
more than one alias (e.g. AZURE_OPENAI_KEY and AZURE_OPENAI_API_KEY both work).

Example:
    from agentcrew.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_turns = settings.orchestration.max_iterations
    model_id = settings.models.model_id
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class ModelSettings(BaseSettings):
    """Chat model identifier and credentials.

    Either a plain OpenAI-compatible endpoint (MODEL_API_KEY / MODEL_BASE_URL) or an
    Azure OpenAI deployment (AZURE_OPENAI_ENDPOINT / AZURE_OPENAI_KEY) can be used.
    When an Azure endpoint is configured it takes precedence.
    """

    model_id: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("MODEL_ID", "MODEL_CHAT", "MODEL_CHAT_ID"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "OPENAI_BASE_URL"),
    )
    azure_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AZURE_OPENAI_ENDPOINT"),
    )
    azure_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AZURE_OPENAI_KEY", "AZURE_OPENAI_API_KEY"),
    )
    azure_api_version: str = Field(
        default="2024-10-21",
        validation_alias=AliasChoices("AZURE_OPENAI_API_VERSION", "OPENAI_API_VERSION"),
    )
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, alias="MODEL_TEMPERATURE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=(),
    )


class OrchestrationSettings(BaseSettings):
    """Turn scheduling and tool dispatch limits.

    - max_iterations: hard ceiling on agent turns per session (1-500, default: 10)
    - approval_token: keyword the baseline termination predicate looks for
    - max_tool_rounds: backend round-trips allowed inside one agent turn
    - tool_timeout: seconds before a tool call is reported as timed out (None = no limit)
    - max_delegation_depth: nesting limit for agents invoked as tools
    """

    max_iterations: int = Field(default=10, ge=1, le=500, alias="MAX_ITERATIONS")
    approval_token: str = Field(default="approve", min_length=1, alias="APPROVAL_TOKEN")
    max_tool_rounds: int = Field(default=10, ge=1, le=100, alias="MAX_TOOL_ROUNDS")
    tool_timeout: Optional[float] = Field(default=None, gt=0, alias="TOOL_TIMEOUT")
    max_delegation_depth: int = Field(default=5, ge=1, le=20, alias="MAX_DELEGATION_DEPTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ObservabilitySettings(BaseSettings):
    """Logging and history persistence configuration.

    - log_level: console/file level for the agentcrew logger
    - log_dir: directory for timestamped log files
    - history_db_path: SQLite file for saved conversations (empty = disabled)
    - log_result_max_length: preview length of tool results in logs
    """

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")
    history_db_path: Optional[str] = Field(default=None, alias="HISTORY_DB_PATH")
    log_result_max_length: int = Field(default=500, ge=50, le=5000, alias="LOG_RESULT_MAX_LENGTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Groups:
    - models: chat model routing and credentials (ModelSettings)
    - orchestration: turn and tool limits (OrchestrationSettings)
    - observability: logging and persistence (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    models: ModelSettings = Field(default_factory=ModelSettings)
    orchestration: OrchestrationSettings = Field(default_factory=OrchestrationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
