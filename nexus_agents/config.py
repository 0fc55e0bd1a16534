"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - agent_max_turns >= 1 (a request always gets at least one model round)

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - price_overrides parsed from JSON env var, merged over DEFAULT_PRICES at startup
    - chunk_buffer_size = 0 means an unbounded chunk queue; positive values
      give a blocking bounded queue (backpressure, never drop)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://nexus:nexus@db:5432/nexus"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_max_retries: int = 3
    anthropic_timeout_seconds: int = 300
    anthropic_base_delay_ms: int = 1000
    anthropic_max_delay_ms: int = 60_000

    # Models
    agent_model: str = "claude-sonnet-4-5"
    classifier_model: str = "claude-haiku-4-5"
    content_model: str = "claude-sonnet-4-5"

    # Turn engine
    agent_max_turns: int = Field(10, ge=1)
    agent_max_tokens: int = 4096
    model_timeout_seconds: float = 120.0
    tool_timeout_seconds: float = 60.0
    chunk_buffer_size: int = Field(0, ge=0)

    # Usage ledger (USD per million tokens)
    price_overrides: dict[str, dict[str, float]] = {}
    default_input_price: float = 3.0
    default_output_price: float = 15.0

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
