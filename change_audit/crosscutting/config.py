"""
Name: Audit Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults for the audit pipeline (store, dispatcher, worker)

Collaborators:
  - container.py: picks store/dispatcher implementations from settings
  - worker/worker.py: reads redis/database/queue settings
  - crosscutting/logger.py: reads log_level / log_json

Constraints:
  - No business logic — pure configuration
  - Per-entity audit rules live in application/registry.py, not here

Notes:
  - Singleton via lru_cache
  - `reset_settings()` exists for tests that tweak env vars
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_STORE_BACKENDS = {"memory", "postgres"}
_DISPATCH_MODES = {"auto", "rq", "background", "inline"}


class Settings(BaseSettings):
    """
    Audit settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/production/test)
        database_url: PostgreSQL connection string (postgres store only)
        redis_url: Redis connection string for the RQ audit queue (optional)
        audit_enabled: Process-wide auditing switch at startup (default: True)
        audit_store_backend: memory|postgres (default: memory)
        audit_dispatch_mode: auto|rq|background|inline (default: auto)
        audit_queue_name: RQ queue name (default: "audit")
        audit_retry_max_attempts: Store write attempts inside the worker
        audit_retry_base_delay_seconds: Backoff base delay
        audit_retry_max_delay_seconds: Backoff ceiling
        audit_job_timeout_seconds: Max runtime of a persistence job
        audit_result_ttl_seconds: RQ result TTL
        audit_background_queue_size: Pending records allowed in background mode
        audit_default_ignored_attributes: Comma-separated default ignore list
        db_pool_min_size / db_pool_max_size: Connection pool bounds
        db_statement_timeout_ms: statement_timeout applied per connection
        log_level: Logging level (default: INFO)
        log_json: Emit JSON logs (default: True)
        worker_http_port: Health/metrics port of the worker process
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    app_env: str = "development"

    # Infrastructure
    database_url: str = ""
    redis_url: str = ""

    # Audit pipeline
    audit_enabled: bool = True
    audit_store_backend: str = "memory"
    audit_dispatch_mode: str = "auto"
    audit_queue_name: str = "audit"
    audit_retry_max_attempts: int = 3
    audit_retry_base_delay_seconds: float = 1.0
    audit_retry_max_delay_seconds: float = 30.0
    audit_job_timeout_seconds: int = 60
    audit_result_ttl_seconds: int = 0
    audit_background_queue_size: int = 1000
    audit_default_ignored_attributes: str = "created_at,updated_at,deleted_at"

    # Database - Connection Pool
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_statement_timeout_ms: int = 30000  # 30 seconds

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    # Worker
    worker_http_port: int = 8001

    @field_validator("audit_store_backend")
    @classmethod
    def store_backend_valid(cls, v: str) -> str:
        backend = (v or "memory").strip().lower()
        if backend not in _STORE_BACKENDS:
            raise ValueError("audit_store_backend must be memory or postgres")
        return backend

    @field_validator("audit_dispatch_mode")
    @classmethod
    def dispatch_mode_valid(cls, v: str) -> str:
        mode = (v or "auto").strip().lower()
        if mode not in _DISPATCH_MODES:
            raise ValueError(
                "audit_dispatch_mode must be auto, rq, background, or inline"
            )
        return mode

    @field_validator("audit_retry_max_attempts")
    @classmethod
    def retry_attempts_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("audit_retry_max_attempts must be >= 1")
        return v

    @field_validator("audit_background_queue_size")
    @classmethod
    def background_queue_size_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("audit_background_queue_size must be greater than 0")
        return v

    @model_validator(mode="after")
    def validate_store_requirements(self):
        if self.audit_store_backend == "postgres" and not self.database_url.strip():
            raise ValueError("DATABASE_URL is required when AUDIT_STORE_BACKEND=postgres")
        if self.audit_dispatch_mode == "rq" and not self.redis_url.strip():
            raise ValueError("REDIS_URL is required when AUDIT_DISPATCH_MODE=rq")
        # El worker RQ corre en otro proceso: un store en memoria no es consultable.
        if self.resolve_dispatch_mode() == "rq" and self.audit_store_backend == "memory":
            raise ValueError(
                "RQ dispatch requires AUDIT_STORE_BACKEND=postgres "
                "(set AUDIT_DISPATCH_MODE=background or inline to keep the memory store)"
            )
        return self

    def get_default_ignored_attributes(self) -> frozenset[str]:
        """Parse the comma-separated default ignore list."""
        return frozenset(
            name.strip()
            for name in self.audit_default_ignored_attributes.split(",")
            if name.strip()
        )

    def resolve_dispatch_mode(self) -> str:
        """`auto` means RQ when Redis is configured, background thread otherwise."""
        if self.audit_dispatch_mode != "auto":
            return self.audit_dispatch_mode
        return "rq" if self.redis_url.strip() else "background"

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    get_settings.cache_clear()
