"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., QUEUE_BATCH_SIZE env var → Settings.QUEUE_BATCH_SIZE)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

The queue itself never reads Settings directly. The composition root calls
settings.queue_config() and hands the resulting QueueConfig to QueueService,
so tests can build a QueueConfig by hand.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class QueueConfig(BaseModel):
    """
    Options the queue consults at runtime.

    Frozen: to change configuration, build a new QueueConfig and
    assign it to the service. Jobs already enqueued keep the max_attempts
    they were stamped with.
    """

    batch_size: int = Field(default=10, ge=1)
    max_attempts: int = Field(default=3, ge=1)
    base_retry_delay_seconds: float = Field(default=60.0, ge=0)
    retention_days: int = Field(default=30, ge=0)
    lock_timeout_seconds: float = Field(default=300.0, gt=0)
    error_max_length: int = Field(default=65535, ge=1)
    refill_delay_seconds: float = Field(default=5.0, ge=0)

    model_config = {"frozen": True}


class Settings(BaseSettings):
    # ── Database ────────────────────────────────────────────────
    # DATABASE_URL wins when set (e.g. sqlite:///queue.db for local runs)
    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "jobqueue"
    POSTGRES_PASSWORD: str = "jobqueue"
    POSTGRES_DB: str = "jobqueue"

    # ── Redis (notification sink) ───────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    EVENTS_TO_REDIS: bool = True

    # ── Queue ───────────────────────────────────────────────────
    QUEUE_BATCH_SIZE: int = 10
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_BASE_RETRY_DELAY: float = 60.0   # backoff = base * 3^(attempts-1)
    QUEUE_RETENTION_DAYS: int = 30
    QUEUE_LOCK_TIMEOUT: float = 300.0      # seconds before a processing job counts as stuck
    QUEUE_ERROR_MAX_LENGTH: int = 65535
    QUEUE_REFILL_DELAY: float = 5.0        # pause before the extra cycle after a full batch

    # ── Worker ──────────────────────────────────────────────────
    WORKER_POLL_INTERVAL: float = 60.0     # seconds between dispatch cycles
    JANITOR_INTERVAL: float = 86400.0      # seconds between cleanup passes

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        """Sync connection string (psycopg2 driver unless DATABASE_URL overrides it)."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def queue_config(self) -> QueueConfig:
        """Snapshot the QUEUE_* values into a validated QueueConfig."""
        return QueueConfig(
            batch_size=self.QUEUE_BATCH_SIZE,
            max_attempts=self.QUEUE_MAX_ATTEMPTS,
            base_retry_delay_seconds=self.QUEUE_BASE_RETRY_DELAY,
            retention_days=self.QUEUE_RETENTION_DAYS,
            lock_timeout_seconds=self.QUEUE_LOCK_TIMEOUT,
            error_max_length=self.QUEUE_ERROR_MAX_LENGTH,
            refill_delay_seconds=self.QUEUE_REFILL_DELAY,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton for entry points only — library code takes a QueueConfig instead
settings = Settings()
