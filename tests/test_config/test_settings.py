"""Tests for Settings (environment) and QueueConfig (runtime options)."""

import pytest
from pydantic import ValidationError

from config.settings import QueueConfig, Settings


def test_queue_config_defaults():
    config = QueueConfig()
    assert config.batch_size == 10
    assert config.max_attempts == 3
    assert config.base_retry_delay_seconds == 60
    assert config.retention_days == 30
    assert config.lock_timeout_seconds == 300
    assert config.error_max_length == 65535


def test_queue_config_is_frozen():
    config = QueueConfig()
    with pytest.raises(ValidationError):
        config.batch_size = 50


@pytest.mark.parametrize("field", ["batch_size", "max_attempts", "error_max_length"])
def test_queue_config_rejects_zero(field):
    with pytest.raises(ValidationError):
        QueueConfig(**{field: 0})


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("QUEUE_BATCH_SIZE", "25")
    monkeypatch.setenv("QUEUE_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("QUEUE_RETENTION_DAYS", "7")

    config = Settings(_env_file=None).queue_config()

    assert config.batch_size == 25
    assert config.max_attempts == 5
    assert config.retention_days == 7


def test_invalid_environment_value_fails_at_snapshot(monkeypatch):
    monkeypatch.setenv("QUEUE_BATCH_SIZE", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None).queue_config()


def test_database_url_defaults_to_postgres():
    settings = Settings(_env_file=None, DATABASE_URL=None, POSTGRES_HOST="db")
    assert settings.database_url.startswith("postgresql+psycopg2://")
    assert "@db:5432/" in settings.database_url


def test_database_url_override():
    settings = Settings(_env_file=None, DATABASE_URL="sqlite:///queue.db")
    assert settings.database_url == "sqlite:///queue.db"


def test_redis_url():
    settings = Settings(_env_file=None, REDIS_HOST="cache", REDIS_PORT=6380, REDIS_DB=2)
    assert settings.redis_url == "redis://cache:6380/2"
