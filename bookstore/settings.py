"""Application settings via Pydantic Settings."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Bookstore Store Layer"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Redis (needs the RediSearch module, e.g. redis-stack)
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "REDIS_CONNECTION_STRING"),
    )
    redis_socket_timeout: float = Field(default=5.0, gt=0)

    # Secondary indexes
    book_index_name: str = Field(
        default="books-idx",
        validation_alias=AliasChoices("BOOK_INDEX_NAME"),
    )
    cart_index_name: str = Field(
        default="cart-idx",
        validation_alias=AliasChoices("CART_INDEX_NAME"),
    )
    create_indexes_on_startup: bool = Field(
        default=True,
        description="Drop and recreate the search indexes in the app lifespan",
    )

    # Password hashing
    bcrypt_work_factor: int = Field(
        default=11,
        validation_alias=AliasChoices("BCRYPT_WORK_FACTOR", "BCryptWorkFactor"),
        ge=4,
        le=31,
        description="bcrypt cost; lower it (e.g. 4) only for demos and tests",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
