"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Credentials default to empty strings; components that need them check
    availability before use and refuse to run unconfigured.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in app.main.
    cors_origins: str = ""

    # ===========================================
    # DATABASE
    # ===========================================
    # PostgreSQL in production (postgresql+psycopg2://...), SQLite for local runs.
    database_url: str = "sqlite:///./pipeline.db"

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # ===========================================
    # JOB QUEUE
    # ===========================================
    job_queue_backend: str = "redis"  # redis, memory
    job_queue_name: str = "inference-jobs"
    # Seconds a dequeued job stays invisible before it is redelivered.
    job_visibility_timeout_seconds: int = 900
    job_queue_poll_interval: float = 0.5

    # ===========================================
    # WORKERS
    # ===========================================
    worker_concurrency: int = 4
    worker_dequeue_timeout: float = 1.0
    stuck_job_threshold_minutes: int = 30
    # Prometheus exporter for the worker process; 0 disables it.
    worker_metrics_port: int = 0

    # ===========================================
    # INFERENCE BACKEND (Gradio Spaces on Hugging Face)
    # ===========================================
    huggingface_api_key: str = ""
    measurement_space: str = "Qlozet/hybrid_body_measurement_mask"
    outfit_generator_space: str = "Qlozet/qlozet-image-generator-memory"
    image_editor_space: str = "Qlozet/Image-editor"
    # JSON object {"<space id>": "https://host"}; listed spaces are reached at that URL instead of through the Hub.
    inference_space_urls: str = ""
    inference_timeout_seconds: float = 300.0
    inference_connect_timeout_seconds: float = 10.0

    # ===========================================
    # OBJECT STORE (temporary inputs, generated outputs)
    # ===========================================
    object_store_backend: str = "cloudinary"  # cloudinary, local
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_timeout: float = 60.0
    storage_base_path: str = "/data/objects"
    storage_public_base_url: str = "http://localhost:8000/objects"

    # ===========================================
    # WEBHOOKS
    # ===========================================
    webhook_timeout_seconds: float = 10.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30
    cb_storage: str = "redis"  # redis, memory

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("job_queue_backend", "object_store_backend", "cb_storage")
    @classmethod
    def normalize_backend(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("inference_space_urls")
    @classmethod
    def validate_space_urls(cls, v: str) -> str:
        """Must be empty or a JSON object of space id -> base URL."""
        v = (v or "").strip()
        if v and not isinstance(json.loads(v), dict):
            raise ValueError("inference_space_urls must be a JSON object")
        return v

    @property
    def space_url_overrides(self) -> dict[str, str]:
        if not self.inference_space_urls:
            return {}
        return {k: str(u).rstrip("/") for k, u in json.loads(self.inference_space_urls).items()}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
