"""
Claim engine — moves a batch of eligible jobs from `pending` to `processing`
so that no two workers (threads, processes or hosts) ever run the same job.

Two layers, both always on:

    1. Locking read
       SELECT ... WHERE status='pending' AND scheduled_at <= now
                  AND attempts < max_attempts
       ORDER BY priority rank, scheduled_at, id
       LIMIT batch_size
       FOR UPDATE SKIP LOCKED

       Rows another transaction is already claiming are skipped instead of
       waited on. SQLAlchemy drops the locking clause on dialects that don't
       support it (SQLite), which is why layer 2 exists.

    2. Guarded conditional update, one per candidate
       UPDATE jobs SET status='processing', attempts=attempts+1, started_at=now
       WHERE id=:id AND status='pending' AND attempts=:seen

       rowcount == 1 → we own the job. rowcount == 0 → someone else got there
       first (or the row changed since we read it): skip it, no error.
       The attempts guard also keeps our snapshot exact, so ClaimedJob.attempts
       is the value now stored in the row.

The caller owns the transaction: it commits after claim() returns, which
releases the row locks with the claims already recorded.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.enums import JobStatus
from models.job import Job, priority_rank
from scheduler.base import ClaimedJob

logger = logging.getLogger(__name__)


class ClaimEngine:

    def select_candidates(self, session: Session, now: datetime, batch_size: int) -> list:
        """Step 1: locking read of up to batch_size eligible rows, in claim order."""
        query = (
            select(Job.id, Job.job_type, Job.payload, Job.attempts, Job.max_attempts)
            .where(
                Job.status == JobStatus.PENDING.value,
                Job.scheduled_at <= now,
                Job.attempts < Job.max_attempts,
            )
            .order_by(priority_rank, Job.scheduled_at, Job.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        return list(session.execute(query).all())

    def try_claim(self, session: Session, job_id: int, seen_attempts: int, now: datetime) -> bool:
        """Step 2: conditional update. True only if this call won the job."""
        result = session.execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.PENDING.value,
                Job.attempts == seen_attempts,
            )
            .values(
                status=JobStatus.PROCESSING.value,
                attempts=Job.attempts + 1,
                started_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def claim(self, session: Session, now: datetime, batch_size: int) -> list[ClaimedJob]:
        """Select candidates and claim each one. Returns only the jobs we won."""
        claimed: list[ClaimedJob] = []
        for row in self.select_candidates(session, now, batch_size):
            if not self.try_claim(session, row.id, row.attempts, now):
                logger.debug(f"Job {row.id} already claimed by another worker, skipping")
                continue
            claimed.append(
                ClaimedJob(
                    job_id=row.id,
                    job_type=row.job_type,
                    payload=row.payload,
                    attempts=row.attempts + 1,
                    max_attempts=row.max_attempts,
                )
            )
        return claimed
