"""Application configuration."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    postgres_host: str = "postgres"
    postgres_port: int = 5432
    postgres_user: str = "printbrain"
    postgres_password: str = "changeme"
    postgres_db: str = "printbrain_db"
    database_url_override: Optional[str] = None

    # Redis
    redis_url: str = "redis://redis:6379/0"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True

    # Celery
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"

    # Google Drive
    google_service_account_key_path: str = "./credentials/google-service-account.json"
    google_service_account_key: Optional[str] = None
    google_drive_folder_id: str = ""
    drive_sync_token_path: str = ".drive-sync-token.json"
    drive_scan_concurrency: int = 30
    drive_poll_interval_sec: int = 300
    drive_use_image_metadata: bool = False

    # OpenAI (enrichment)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    enrich_batch_size: int = 25
    enrich_lanes: int = 8
    enrich_workers: int = 10

    # Gemini (embeddings)
    gemini_api_key: str = ""
    gemini_embedding_model: str = "text-embedding-004"

    # Shopify
    shopify_store_domain: str = ""
    shopify_admin_api_token: str = ""
    shopify_api_version: str = "2024-10"
    shopify_webhook_secret: str = ""
    shopify_push_tags: bool = False
    nightly_sync_max_variants: int = 900

    # Printful
    printful_api_key: str = ""
    printful_auto_confirm: bool = False

    # Storefront
    price_map_path: str = "config/skeleton-price-map.json"

    # Scheduler
    local_utc_offset_hours: int = 1
    nightly_ingest_hour: int = 1
    nightly_ingest_limit: int = 1000
    nightly_ingest_concurrency: int = 5
    nightly_sync_hour: int = 3

    # Environment
    environment: str = "development"

    @property
    def database_url(self) -> str:
        """Build database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def shopify_base_url(self) -> str:
        """Build Shopify Admin REST base URL."""
        return f"https://{self.shopify_store_domain}/admin/api/{self.shopify_api_version}"


settings = Settings()
