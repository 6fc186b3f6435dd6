from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "capture"
    db_username: str = "capture"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5
    files_root: str = "/app/files"

    pdf_engine: str = "pymupdf"
    pdf_sort_text: bool = False
    pdf_x_tolerance: float = 3.0

    worker_count: int = 3
    inter_item_delay_seconds: float = 0.2
    recognition_max_retries: int = 3
    recognition_base_delay_seconds: float = 1.0
    min_text_length: int = 10
    max_text_pages: int = 5

    max_image_dimension: int = 2000
    image_quality: int = 85
    render_scale: float = 1.5
    max_payload_bytes: int = 4 * 1024 * 1024

    recognition_provider: str = "http"
    recognition_http_url: str = ""
    recognition_http_api_key: str = ""
    recognition_http_timeout_seconds: int = 60

    recognition_openai_api_key: str = ""
    recognition_openai_model_name: str = "gpt-4o-mini"
    recognition_openai_timeout_seconds: int = 60
    recognition_openai_temperature: float = 0.0
    recognition_openai_compatible_base_url: str = ""

    license_id: str = ""
