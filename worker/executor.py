"""
Job executor — runs one claimed job and records how it ended.

For each ClaimedJob:

    1. Find the handler in the registry      (missing → permanent failure)
    2. Decode the JSON payload               (undecodable → permanent failure)
    3. Call handler(payload, job_id), timed with time.monotonic()
    4. On success: mark `completed`, emit job_completed
    5. On failure: hand off to FailurePolicy (retry or dead-letter)

Whatever the handler does (return a failure, return garbage, raise), the job
ends this method in `completed`, `pending` (retry) or `dead_letter`. Two
exceptions:
- a storage error while writing that outcome: the transaction is rolled back
  and the job stays `processing` until the janitor reclaims it (ABORTED)
- the janitor already reclaimed the job while the handler ran: the outcome
  write matches no row and the new owner is left alone (CLAIM_LOST)

Each execute() call gets its OWN database session, opened only after the
handler returns, so no connection is held while a slow handler runs.
"""

import json
import logging
import time
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobs.base import JobError, JobResult
from jobs.registry import HandlerRegistry
from models.enums import ErrorKind, JobOutcome
from models.repository import JobRepository
from scheduler.base import ClaimedJob
from worker.events import QueueEvents, emit
from worker.retry import FailurePolicy

logger = logging.getLogger(__name__)


class JobExecutor:

    def __init__(
        self,
        db_session_factory: Callable[[], Session],
        registry: HandlerRegistry,
        failure_policy: FailurePolicy,
        events: QueueEvents,
        clock: Callable,
    ):
        self._db_session_factory = db_session_factory
        self._registry = registry
        self._failure_policy = failure_policy
        self._events = events
        self._clock = clock

    def execute(self, job: ClaimedJob) -> JobOutcome:
        started = time.monotonic()
        error = self._run_handler(job)
        elapsed = time.monotonic() - started

        session: Session = self._db_session_factory()
        try:
            if error is not None:
                return self._failure_policy.handle_failure(session, job, error, self._clock())

            written = JobRepository(session).mark_completed(job.job_id, job.attempts, self._clock())
            session.commit()
            if not written:
                logger.warning(
                    f"Job {job.job_id} [{job.job_type}] finished but its claim was lost "
                    f"to stuck-job recovery; completion not recorded"
                )
                return JobOutcome.CLAIM_LOST
            emit(self._events.job_completed, job.job_id, job.job_type, elapsed)
            return JobOutcome.COMPLETED

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(
                f"Could not record outcome of job {job.job_id} [{job.job_type}]: {e}. "
                f"Leaving it for stuck-job recovery",
                exc_info=True,
            )
            return JobOutcome.ABORTED

        finally:
            session.close()

    def _run_handler(self, job: ClaimedJob) -> JobError | None:
        """Invoke the handler; returns None on success, a JobError otherwise."""
        handler = self._registry.get(job.job_type)
        if handler is None:
            return JobError(
                f"No handler registered for job type '{job.job_type}'", ErrorKind.PERMANENT
            )

        try:
            payload = json.loads(job.payload) if job.payload else {}
        except ValueError as e:
            return JobError(f"Undecodable payload: {e}", ErrorKind.PERMANENT)

        try:
            result = handler(payload, job.job_id)
        except Exception as e:
            # Unexpected fault inside the handler: same path as a reported failure
            logger.error(f"Job {job.job_id} [{job.job_type}] raised: {e}", exc_info=True)
            return JobError(f"{type(e).__name__}: {e}")

        if result is None:
            return None
        if not isinstance(result, JobResult):
            return JobError(
                f"Handler returned {type(result).__name__}, expected JobResult or None"
            )
        if result.error is None:
            return None
        error = result.error
        if not isinstance(error, JobError):
            return JobError(f"Handler returned an invalid error: {error!r}")
        if not isinstance(error.message, str):
            # e.g. JobResult.failure(exc): keep the kind, store the text
            kind = error.kind if isinstance(error.kind, ErrorKind) else ErrorKind.TRANSIENT
            return JobError(str(error.message), kind)
        return error
