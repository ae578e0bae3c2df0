"""
Janitor — periodic maintenance that keeps the jobs table healthy.

Two independent sweeps, both plain UPDATE/DELETE statements scoped by
status + time predicates, so they can never touch a job a live worker has
just claimed:

    Stuck-job recovery
        processing AND started_at < now - lock_timeout
            → pending, scheduled_at = now (attempts unchanged)

        A worker that crashed or was killed mid-job leaves its row in
        `processing` forever; this is the only thing that brings it back.
        The price is at-least-once execution: if the "stuck" worker was
        merely slow, the job may run twice.

        A stuck job that already used its last attempt could never be
        claimed again (the claim query requires attempts < max_attempts),
        so instead of stranding it in `pending` it goes to dead_letter.

    Retention sweep
        (completed OR dead_letter) AND completed_at < now - retention_days
            → DELETE
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from models.enums import JobStatus
from models.job import Job
from worker.retry import truncate_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupReport:
    recovered: int = 0       # stuck jobs sent back to pending
    dead_lettered: int = 0   # stuck jobs with no attempts left
    purged: int = 0          # terminal jobs deleted by retention


class Janitor:

    def __init__(self, lock_timeout_seconds: float, retention_days: int, error_max_length: int = 65535):
        self.lock_timeout_seconds = lock_timeout_seconds
        self.retention_days = retention_days
        self.error_max_length = error_max_length

    def recover_stuck(self, session: Session, now: datetime) -> tuple[int, int]:
        """Returns (recovered, dead_lettered)."""
        cutoff = now - timedelta(seconds=self.lock_timeout_seconds)
        stuck = (
            Job.status == JobStatus.PROCESSING.value,
            Job.started_at < cutoff,
        )

        exhausted = session.execute(
            update(Job)
            .where(*stuck, Job.attempts >= Job.max_attempts)
            .values(
                status=JobStatus.DEAD_LETTER.value,
                completed_at=now,
                last_error=truncate_error(
                    f"Lock timeout exceeded ({self.lock_timeout_seconds:g}s) on final attempt",
                    self.error_max_length,
                ),
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        recovered = session.execute(
            update(Job)
            .where(*stuck, Job.attempts < Job.max_attempts)
            .values(
                status=JobStatus.PENDING.value,
                scheduled_at=now,
                started_at=None,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if recovered or exhausted:
            logger.warning(
                f"Recovered {recovered} stuck jobs, dead-lettered {exhausted} "
                f"(lock timeout {self.lock_timeout_seconds:g}s)"
            )
        return recovered, exhausted

    def purge_expired(self, session: Session, now: datetime) -> int:
        cutoff = now - timedelta(days=self.retention_days)
        purged = session.execute(
            delete(Job)
            .where(
                Job.status.in_([s.value for s in JobStatus.terminal()]),
                Job.completed_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if purged:
            logger.info(f"Purged {purged} terminal jobs older than {self.retention_days} days")
        return purged

    def sweep(self, session: Session, now: datetime) -> CleanupReport:
        """Run both sweeps. Caller commits."""
        recovered, dead_lettered = self.recover_stuck(session, now)
        purged = self.purge_expired(session, now)
        return CleanupReport(recovered=recovered, dead_lettered=dead_lettered, purged=purged)
