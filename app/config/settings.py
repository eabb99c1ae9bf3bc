from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "receipts"
    db_username: str = "receipts"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    worker_concurrency: int = 4
    worker_batch_size: int | None = None
    stale_after_seconds: int = 900
    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5

    pdf_engine: str = "pdfplumber"
    pdf_max_pages: int = 5
    receipt_storage_root: str = ".receipt-storage"

    llm_provider: str = "none"
    llm_api_key: str = ""
    llm_model_name: str = "gpt-4o-mini"
    llm_base_url: str | None = None
    llm_timeout_seconds: int = 30
    llm_max_tokens: int = 700
    llm_fallback_confidence: float = 0.7
    llm_rate_limit_requests: int = 20
    llm_rate_limit_window_seconds: int = 60
    llm_cache_backend: str = "postgres"
    llm_cache_ttl_days: int = 7
