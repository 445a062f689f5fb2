"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # SHOPIFY
    # ===================
    shopify_store_domain: Optional[str] = Field(
        None,
        description="Store domain, e.g. my-shop.myshopify.com"
    )
    shopify_access_token: Optional[str] = Field(
        None,
        description="Admin API access token"
    )
    shopify_api_version: str = Field(
        default="2024-10",
        pattern=r"^\d{4}-\d{2}$",
        description="Admin GraphQL API version"
    )
    shopify_timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="Timeout for a single Admin API request"
    )

    # ===================
    # IMPORT TUNING
    # ===================
    import_max_pages: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Safety cap on supplier API pages per import"
    )
    source_page_timeout_seconds: int = Field(
        default=30,
        ge=10,
        le=30,
        description="Timeout for a single supplier API page request"
    )
    source_validation_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=30,
        description="Timeout for supplier connection validation"
    )
    inventory_batch_size: int = Field(
        default=200,
        ge=1,
        le=250,
        description="Quantities per inventorySetOnHandQuantities call"
    )
    max_tags_per_product: int = Field(
        default=250,
        ge=1,
        le=250,
        description="Tags kept per product (platform limit)"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def shopify_configured(self) -> bool:
        """Check if the Admin API is properly configured."""
        return bool(self.shopify_store_domain and self.shopify_access_token)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
