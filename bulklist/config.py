"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Listing store
    database_url: str = "sqlite:///bulklist.db"
    sql_echo: bool = False

    # Grouping
    min_group_size: int = 3
    max_group_size: int = 5

    # Shipping
    dimensional_divisor: float = 166.0
    priority_price_threshold: float = 100.0
    default_draft_shipping_cost: float = 9.95

    # Enrichment
    enrichment_timeout_seconds: float = 30.0
    enrichment_concurrency: int = 1

    # Pipeline
    skip_shipping_stage: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="BULKLIST_",
        extra="ignore",
    )


# Global settings instance
settings = Settings()
