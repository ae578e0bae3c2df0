"""
Failure policy — decides what happens when a job fails.

Two outcomes:
1. attempts < max_attempts and the error is transient
   → back to `pending`, scheduled_at = now + backoff
2. attempts >= max_attempts, or the error is permanent
   → `dead_letter` (terminal, never claimed again)

attempts was already incremented when the job was claimed, so it is the
number of the attempt that just failed. Backoff grows by a factor of 3:

    backoff = base_delay * 3^(attempts - 1)
    base_delay=60  → 60s, 180s, 540s, 1620s, ...

Lifecycle on failure:
    processing → (failure, retries left) → pending      (scheduled_at pushed out)
    processing → (failure, exhausted)    → dead_letter  (completed_at set)

Why reset to pending instead of keeping a separate retry queue?
The claim query already filters on scheduled_at <= now, so a pushed-out
scheduled_at is all it takes. Retries go through the exact same claim path
as new jobs.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from jobs.base import JobError
from models.enums import JobOutcome
from models.repository import JobRepository
from scheduler.base import ClaimedJob
from worker.events import QueueEvents, emit

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "... [truncated]"


def compute_backoff(attempts: int, base_delay: float) -> float:
    """Seconds to wait before the next attempt, after `attempts` failed ones."""
    return base_delay * (3 ** (max(attempts, 1) - 1))


def truncate_error(message: str, limit: int) -> str:
    """
    Bound an error message to `limit` bytes (UTF-8) for the last_error column.

    Cuts never split a multibyte character; the marker is appended when there
    is room for it.
    """
    encoded = message.encode("utf-8")
    if len(encoded) <= limit:
        return message
    marker = TRUNCATION_MARKER.encode("utf-8")
    if limit <= len(marker):
        return encoded[:limit].decode("utf-8", errors="ignore")
    head = encoded[: limit - len(marker)].decode("utf-8", errors="ignore")
    return head + TRUNCATION_MARKER


class FailurePolicy:

    def __init__(self, base_retry_delay_seconds: float, error_max_length: int, events: QueueEvents):
        self.base_retry_delay_seconds = base_retry_delay_seconds
        self.error_max_length = error_max_length
        self._events = events

    def handle_failure(self, session: Session, job: ClaimedJob, error: JobError, now: datetime) -> JobOutcome:
        """
        Record a failed attempt and commit.

        Args:
            session: an open DB session; committed here on success
            job: the claim-time snapshot (attempts already incremented)
            error: what went wrong
            now: the time the failure is recorded at

        Returns CLAIM_LOST, and emits nothing, when the row no longer belongs
        to this claim (recovered by the janitor while the handler ran).
        """
        message = truncate_error(str(error.message or "Unknown error"), self.error_max_length)
        repo = JobRepository(session)

        if error.permanent or job.attempts >= job.max_attempts:
            # ── Exhausted or hopeless: dead letter ──────────────
            outcome = JobOutcome.DEAD_LETTERED
            written = repo.mark_dead_letter(job.job_id, job.attempts, now, message)
        else:
            # ── Retry: back to pending after the backoff ────────
            outcome = JobOutcome.RETRY_SCHEDULED
            backoff = compute_backoff(job.attempts, self.base_retry_delay_seconds)
            written = repo.schedule_retry(job.job_id, job.attempts, now + timedelta(seconds=backoff), message)
        session.commit()

        if not written:
            logger.warning(
                f"Job {job.job_id} [{job.job_type}] failure on attempt {job.attempts} not recorded: "
                f"claim was lost to stuck-job recovery"
            )
            return JobOutcome.CLAIM_LOST

        if outcome is JobOutcome.DEAD_LETTERED:
            reason = "permanent error" if error.permanent else f"{job.attempts}/{job.max_attempts} attempts used"
            logger.warning(f"Job {job.job_id} [{job.job_type}] dead-lettered ({reason})")
        else:
            logger.info(
                f"Job {job.job_id} [{job.job_type}] will be retried in {backoff:g}s "
                f"({job.attempts}/{job.max_attempts})"
            )

        emit(self._events.job_failed, job.job_id, job.job_type, message, job.attempts)
        if outcome is JobOutcome.DEAD_LETTERED:
            emit(self._events.job_dead_lettered, job.job_id, job.job_type, message, job.attempts)
        return outcome
