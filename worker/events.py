"""
Observability hooks — completion, failure and dead-letter notifications.

These are one-way and fire-and-forget. The service calls them after the
job's new state is committed, and a sink that blows up is logged and
ignored: a metrics outage must never turn a completed job into a failed one.

QueueEvents logs each event. RedisQueueEvents additionally pushes JSON
entries to Redis lists so dashboards and on-call tooling can follow the
queue without touching the database:

    jobqueue:events       every event (completed / failed / dead_letter)
    jobqueue:dead_letter  dead-lettered jobs only, for review and resubmission
"""

import json
import logging
from datetime import datetime, timezone

from redis import Redis

logger = logging.getLogger(__name__)


class QueueEvents:

    def job_completed(self, job_id: int, job_type: str, duration: float) -> None:
        logger.info(f"Job {job_id} [{job_type}] completed in {duration:.3f}s")

    def job_failed(self, job_id: int, job_type: str, error: str, attempts: int) -> None:
        logger.warning(f"Job {job_id} [{job_type}] failed on attempt {attempts}: {error[:200]}")

    def job_dead_lettered(self, job_id: int, job_type: str, error: str, attempts: int) -> None:
        logger.error(
            f"Job {job_id} [{job_type}] moved to dead letter after {attempts} attempts: {error[:200]}"
        )


class RedisQueueEvents(QueueEvents):

    EVENTS_KEY = "jobqueue:events"
    DEAD_LETTER_KEY = "jobqueue:dead_letter"

    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    def job_completed(self, job_id: int, job_type: str, duration: float) -> None:
        super().job_completed(job_id, job_type, duration)
        self._push(self.EVENTS_KEY, "completed", job_id, job_type, duration_sec=round(duration, 3))

    def job_failed(self, job_id: int, job_type: str, error: str, attempts: int) -> None:
        super().job_failed(job_id, job_type, error, attempts)
        self._push(self.EVENTS_KEY, "failed", job_id, job_type, error=error, attempts=attempts)

    def job_dead_lettered(self, job_id: int, job_type: str, error: str, attempts: int) -> None:
        super().job_dead_lettered(job_id, job_type, error, attempts)
        fields = {"error": error, "attempts": attempts}
        self._push(self.EVENTS_KEY, "dead_letter", job_id, job_type, **fields)
        self._push(self.DEAD_LETTER_KEY, "dead_letter", job_id, job_type, **fields)

    def _push(self, key: str, event: str, job_id: int, job_type: str, **fields) -> None:
        entry = json.dumps({
            "event": event,
            "job_id": job_id,
            "job_type": job_type,
            "at": datetime.now(timezone.utc).isoformat(),
            **fields,
        })
        self._redis.rpush(key, entry)


def emit(callback, *args) -> None:
    """Call one event hook; a failing sink is logged, never raised."""
    try:
        callback(*args)
    except Exception as e:
        logger.warning(f"Event hook {getattr(callback, '__name__', callback)} failed: {e}", exc_info=True)
