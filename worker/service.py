"""
QueueService — the one object producers and triggers talk to.

    add_job()            Producer API: validate + insert a pending job
    process_queue()      One dispatch cycle: claim a batch, execute it
    cleanup_dead_jobs()  Janitor pass: recover stuck jobs, purge old ones
    get_stats()          Counts per status

There is no global instance. The composition root (worker/main.py for the
CLI, api/main.py for the HTTP app) builds one with build_service() and passes
it to whoever needs it.

A dispatch cycle looks like this:

    ┌─────────────────────────────── one transaction ─┐
    │ SELECT ... FOR UPDATE SKIP LOCKED  (ClaimEngine)│
    │ UPDATE ... WHERE status='pending' per candidate │
    └──────────────────────────────────────── commit ─┘
                 │ claimed jobs
                 ▼
    for each job: handler → completed | FailurePolicy   (JobExecutor,
                                                          own session per job)
                 │
                 ▼
    full batch? → trigger.request_dispatch(refill_delay)
"""

import json
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from sqlalchemy.orm import Session

from config.settings import QueueConfig
from jobs.registry import HandlerRegistry
from models.base import utcnow
from models.enums import JobOutcome, JobPriority
from models.job import JOB_TYPE_MAX_LENGTH, Job
from models.repository import JobRepository
from scheduler.base import AbstractDispatchTrigger, ClaimedJob, NullTrigger
from scheduler.claim import ClaimEngine
from scheduler.janitor import CleanupReport, Janitor
from worker.errors import InvalidArgument
from worker.events import QueueEvents
from worker.executor import JobExecutor
from worker.retry import FailurePolicy

logger = logging.getLogger(__name__)

# Ten years; anything later is almost certainly a unit mistake (ms for s)
MAX_DELAY_SECONDS = 10 * 365 * 24 * 3600


@dataclass
class DispatchReport:
    claimed: int = 0
    completed: int = 0
    retried: int = 0
    dead_lettered: int = 0
    aborted: int = 0
    claim_lost: int = 0
    refill_requested: bool = False
    job_ids: list[int] = field(default_factory=list)


class QueueService:

    def __init__(
        self,
        db_session_factory: Callable[[], Session],
        registry: HandlerRegistry,
        config: Optional[QueueConfig] = None,
        events: Optional[QueueEvents] = None,
        trigger: Optional[AbstractDispatchTrigger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._db_session_factory = db_session_factory
        self.registry = registry
        self.config = config or QueueConfig()
        self.events = events or QueueEvents()
        self.trigger = trigger or NullTrigger()
        self._clock = clock
        self._claim_engine = ClaimEngine()

    # ── Producer API ────────────────────────────────────────────

    def add_job(
        self,
        job_type: str,
        data: Optional[Mapping] = None,
        priority: JobPriority | str = JobPriority.MEDIUM,
        delay_seconds: float = 0,
    ) -> int:
        """
        Enqueue a job and return its id. Never waits for execution.

        Raises:
            InvalidArgument: empty or over-long job_type, unknown priority,
                negative, non-finite or too large delay, or data that is not a
                JSON-serializable mapping. Nothing is stored.
            SQLAlchemyError: the insert failed.
        """
        if not isinstance(job_type, str) or not job_type.strip():
            raise InvalidArgument("job_type must be a non-empty string")
        if len(job_type) > JOB_TYPE_MAX_LENGTH:
            raise InvalidArgument(f"job_type must be at most {JOB_TYPE_MAX_LENGTH} characters")
        try:
            priority = JobPriority(priority)
        except (ValueError, TypeError):
            allowed = ", ".join(p.value for p in JobPriority)
            raise InvalidArgument(f"Unknown priority {priority!r}; expected one of: {allowed}") from None
        if (
            isinstance(delay_seconds, bool)
            or not isinstance(delay_seconds, (int, float))
            or not math.isfinite(delay_seconds)
            or not 0 <= delay_seconds <= MAX_DELAY_SECONDS
        ):
            raise InvalidArgument(
                f"delay_seconds must be a number between 0 and {MAX_DELAY_SECONDS}, got {delay_seconds!r}"
            )
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise InvalidArgument(f"data must be a mapping, got {type(data).__name__}")
        try:
            payload = json.dumps(dict(data))
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"data is not JSON-serializable: {e}") from None

        now = self._clock()
        try:
            scheduled_at = now + timedelta(seconds=delay_seconds)
        except OverflowError:
            raise InvalidArgument(f"delay_seconds={delay_seconds!r} is past the latest representable date") from None

        session: Session = self._db_session_factory()
        try:
            job_id = JobRepository(session).add(
                job_type=job_type,
                payload=payload,
                priority=priority.value,
                max_attempts=self.config.max_attempts,  # stamped now, never re-read
                scheduled_at=scheduled_at,
                created_at=now,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        logger.info(f"Enqueued job {job_id} [{job_type}] priority={priority.value} delay={delay_seconds}s")
        return job_id

    # ── Dispatch ────────────────────────────────────────────────

    def process_queue(self) -> DispatchReport:
        """
        Run one dispatch cycle.

        A storage error during the claim step rolls back and propagates:
        nothing was claimed, so every job stays pending for the next cycle.
        """
        self.registry.freeze()
        batch_size = self.config.batch_size

        session: Session = self._db_session_factory()
        try:
            claimed = self._claim_engine.claim(session, self._clock(), batch_size)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        report = DispatchReport(claimed=len(claimed), job_ids=[j.job_id for j in claimed])
        if not claimed:
            return report

        logger.info(f"Claimed {len(claimed)} jobs (batch size {batch_size})")
        executor = self._build_executor()
        outcomes = Counter(self._execute_one(executor, job) for job in claimed)

        report.completed = outcomes[JobOutcome.COMPLETED]
        report.retried = outcomes[JobOutcome.RETRY_SCHEDULED]
        report.dead_lettered = outcomes[JobOutcome.DEAD_LETTERED]
        report.aborted = outcomes[JobOutcome.ABORTED]
        report.claim_lost = outcomes[JobOutcome.CLAIM_LOST]

        # Full batch → there is probably more backlog; don't wait a whole interval
        if len(claimed) >= batch_size:
            report.refill_requested = True
            self.trigger.request_dispatch(self.config.refill_delay_seconds)

        logger.info(
            f"Dispatch cycle done: {report.completed} completed, {report.retried} retried, "
            f"{report.dead_lettered} dead-lettered, {report.aborted} aborted, {report.claim_lost} claim lost"
        )
        return report

    # ── Janitor ─────────────────────────────────────────────────

    def cleanup_dead_jobs(self) -> CleanupReport:
        """Recover stuck jobs and purge terminal jobs past retention."""
        janitor = Janitor(
            lock_timeout_seconds=self.config.lock_timeout_seconds,
            retention_days=self.config.retention_days,
            error_max_length=self.config.error_max_length,
        )
        session: Session = self._db_session_factory()
        try:
            report = janitor.sweep(session, self._clock())
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return report

    # ── Inspection ──────────────────────────────────────────────

    def get_stats(self) -> dict[str, int]:
        """{'pending': n, 'processing': n, 'completed': n, 'dead_letter': n}"""
        with self._db_session_factory() as session:
            return JobRepository(session).count_by_status()

    def get_job(self, job_id: int) -> Optional[Job]:
        with self._db_session_factory() as session:
            return JobRepository(session).get(job_id)

    def list_jobs(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Job], int]:
        with self._db_session_factory() as session:
            return JobRepository(session).list_page(
                status=status,
                job_type=job_type,
                offset=(page - 1) * page_size,
                limit=page_size,
            )

    def _execute_one(self, executor: JobExecutor, job: ClaimedJob) -> JobOutcome:
        # One job's failure to record must not strand the rest of the batch
        try:
            return executor.execute(job)
        except Exception as e:
            logger.error(
                f"Job {job.job_id} [{job.job_type}] aborted: {type(e).__name__}: {e}. "
                f"Leaving it for stuck-job recovery",
                exc_info=True,
            )
            return JobOutcome.ABORTED

    def _build_executor(self) -> JobExecutor:
        # Built per cycle so a swapped-in config takes effect on the next cycle
        policy = FailurePolicy(
            base_retry_delay_seconds=self.config.base_retry_delay_seconds,
            error_max_length=self.config.error_max_length,
            events=self.events,
        )
        return JobExecutor(
            self._db_session_factory,
            self.registry,
            policy,
            self.events,
            self._clock,
        )
