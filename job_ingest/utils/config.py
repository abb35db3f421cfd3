from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./job_ingest.db"

    # JSearch API
    jsearch_api_key: Optional[str] = None
    jsearch_api_host: str = "api.openwebninja.com"
    jsearch_base_path: str = "/jsearch"
    request_delay_ms: int = 1000
    max_retries: int = 3
    retry_base_delay_ms: int = 2000
    request_timeout_seconds: int = 30

    # Pagination
    default_page_size: int = 50
    ingestion_num_pages: int = 10

    # Ingestion
    verification_threshold: float = 0.8
    scheduler_enabled: bool = False
    ingestion_interval_minutes: int = 360
    scheduled_buckets: List[str] = ["software engineer", "data analyst", "devops engineer"]
    scheduled_country: str = "India"

    # App settings
    environment: str = "development"
    log_level: str = "INFO"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
