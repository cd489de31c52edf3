"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Redis - for the search result cache and the query embedding cache
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # Search
    search_cache_enabled: bool = Field(default=True, validation_alias="SEARCH_CACHE_ENABLED")
    search_cache_ttl_seconds: int = Field(
        default=300, validation_alias="SEARCH_CACHE_TTL_SECONDS",
    )
    search_cache_empty_ttl_seconds: int = Field(
        default=60, validation_alias="SEARCH_CACHE_EMPTY_TTL_SECONDS",
    )
    search_deadline_seconds: float = Field(
        default=5.0, validation_alias="SEARCH_DEADLINE_SECONDS",
    )
    # Open-count lookup budget, capped by what is left of the search deadline
    search_engagement_timeout_seconds: float = Field(
        default=0.5, validation_alias="SEARCH_ENGAGEMENT_TIMEOUT_SECONDS",
    )
    search_default_limit: int = Field(default=20, validation_alias="SEARCH_DEFAULT_LIMIT")
    search_default_matching_distance: float = Field(
        default=0.1, validation_alias="SEARCH_DEFAULT_MATCHING_DISTANCE",
    )

    # Embedding provider (OpenAI-compatible /embeddings endpoint). Empty URL disables
    # the vector similarity strategy.
    embedding_api_url: str = Field(default="", validation_alias="EMBEDDING_API_URL")
    embedding_api_key: str = Field(default="", validation_alias="EMBEDDING_API_KEY")
    embedding_model: str = Field(
        default="text-embedding-3-small", validation_alias="EMBEDDING_MODEL",
    )
    embedding_timeout_seconds: float = Field(
        default=3.0, validation_alias="EMBEDDING_TIMEOUT_SECONDS",
    )

    @model_validator(mode="after")
    def validate_search_bounds(self) -> "Settings":
        """Reject search settings that the request validator would never accept."""
        if not 1 <= self.search_default_limit <= 100:
            raise ValueError(
                f"SEARCH_DEFAULT_LIMIT must be between 1 and 100 "
                f"(got {self.search_default_limit}).",
            )
        if not 0.1 <= self.search_default_matching_distance <= 2.0:
            raise ValueError(
                f"SEARCH_DEFAULT_MATCHING_DISTANCE must be between 0.1 and 2.0 "
                f"(got {self.search_default_matching_distance}).",
            )
        if self.search_deadline_seconds <= 0:
            raise ValueError("SEARCH_DEADLINE_SECONDS must be positive.")
        if self.search_engagement_timeout_seconds <= 0:
            raise ValueError("SEARCH_ENGAGEMENT_TIMEOUT_SECONDS must be positive.")
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def embeddings_enabled(self) -> bool:
        """Whether a query embedding provider is configured."""
        return bool(self.embedding_api_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
