"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every knob of the README pipeline lives here so the worker process and
    the API process read the same limits from the same environment.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./clio.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # GitHub Configuration
    # GITHUB_TOKEN: installation access token (or PAT in development) used for
    # tree and contents requests. Minting installation tokens is done outside Clio.
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )
    github_token: str = Field(
        default="",
        description="Installation-scoped GitHub token"
    )
    github_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single GitHub request"
    )
    github_max_attempts: int = Field(
        default=1,
        description="Attempts per GitHub request inside one job attempt; job-level retry belongs to the orchestrator"
    )

    # LLM Configuration
    # LiteLLM model string, e.g. "openai/gpt-4o-mini", "ollama/deepseek-r1:14b".
    llm_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Default LiteLLM model for README generation"
    )
    llm_allowed_models: str = Field(
        default="",
        description="Comma-separated models accepted as per-request overrides (empty = default model only)"
    )
    llm_api_key: str = Field(
        default="",
        description="API key for the LLM provider"
    )
    llm_api_base: str = Field(
        default="",
        description="Base URL for the LLM provider (optional, for self-hosted endpoints)"
    )
    llm_max_tokens: int = Field(
        default=4096,
        description="Maximum output tokens per generation"
    )
    llm_temperature: float = Field(
        default=0.7,
        description="Sampling temperature per generation"
    )
    llm_timeout: float = Field(
        default=120.0,
        description="Seconds before a single model call is abandoned"
    )

    # Job Orchestration
    max_concurrent_jobs: int = Field(
        default=3,
        description="Jobs the worker runs at once"
    )
    job_timeout_seconds: float = Field(
        default=300.0,
        description="Wall-clock limit for one job attempt"
    )
    retry_attempts: int = Field(
        default=3,
        description="Retries allowed for transient failures before a job fails"
    )
    retry_delay_seconds: float = Field(
        default=5.0,
        description="Base backoff; the n-th retry waits n times this value"
    )
    cron_batch_size: int = Field(
        default=3,
        description="Jobs processed per cron invocation"
    )
    worker_poll_interval: float = Field(
        default=10.0,
        description="Seconds between worker sweeps of the job table"
    )
    cron_secret: str = Field(
        default="",
        description="Shared secret expected in the cron endpoint Authorization header"
    )

    # Repository Analysis
    analyzer_max_key_files: int = Field(
        default=40,
        description="Maximum number of key files fetched per repository"
    )
    analyzer_max_file_bytes: int = Field(
        default=100_000,
        description="Key files larger than this are skipped"
    )
    analyzer_structure_depth: int = Field(
        default=3,
        description="Directory depth kept in the structure summary"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_allowed_models(self) -> List[str]:
        """Models accepted for generation. The default model is always allowed."""
        models = [m.strip() for m in self.llm_allowed_models.split(',') if m.strip()]
        if self.llm_model not in models:
            models.insert(0, self.llm_model)
        return models

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('max_concurrent_jobs', 'retry_attempts', 'cron_batch_size')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Orchestrator counters cannot be negative."""
        if v < 0:
            raise ValueError("Value must be zero or greater")
        return v

    @field_validator('llm_temperature')
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings are missing.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if not self.cron_secret:
            errors.append(
                "CRON_SECRET is empty. "
                "The cron endpoint would only accept the x-vercel-cron header."
            )

        if not self.github_token:
            errors.append("GITHUB_TOKEN is empty. Repository analysis cannot authenticate.")

        # Check for localhost CORS origins
        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors:
            if self.environment == Environment.PRODUCTION:
                raise ConfigurationError(
                    "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
                )
            return

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
