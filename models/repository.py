"""
Job store access layer.

Thin wrapper around a Session holding every read and every same-job write the
queue performs. It never commits: the caller owns the transaction, so one
unit of work (e.g. "record this failure") is one commit in the caller.

Outcome writes (completed / retry / dead letter) are guarded by the claim
they belong to: status must still be `processing` and attempts must still be
the value the claim produced. If the janitor recovered the job in the
meantime (and maybe another worker claimed it again), the late write matches
no row and the caller gets False back instead of clobbering the new owner.

The claim update and the janitor sweeps are not here; they are conditional
statements owned by scheduler/claim.py and scheduler/janitor.py.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from models.enums import JobStatus
from models.job import Job


class JobRepository:

    def __init__(self, session: Session):
        self._session = session

    # ── Writes ──────────────────────────────────────────────────

    def add(
        self,
        *,
        job_type: str,
        payload: str,
        priority: str,
        max_attempts: int,
        scheduled_at: datetime,
        created_at: datetime,
    ) -> int:
        """Insert one pending job and return its id (flushes to get the id)."""
        job = Job(
            job_type=job_type,
            payload=payload,
            priority=priority,
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            scheduled_at=scheduled_at,
            created_at=created_at,
        )
        self._session.add(job)
        self._session.flush()
        return job.id

    def mark_completed(self, job_id: int, attempts: int, now: datetime) -> bool:
        return self._update_owned(
            job_id,
            attempts,
            status=JobStatus.COMPLETED.value,
            completed_at=now,
            last_error=None,
        )

    def schedule_retry(self, job_id: int, attempts: int, scheduled_at: datetime, error: str) -> bool:
        return self._update_owned(
            job_id,
            attempts,
            status=JobStatus.PENDING.value,
            scheduled_at=scheduled_at,
            last_error=error,
        )

    def mark_dead_letter(self, job_id: int, attempts: int, now: datetime, error: str) -> bool:
        return self._update_owned(
            job_id,
            attempts,
            status=JobStatus.DEAD_LETTER.value,
            completed_at=now,
            last_error=error,
        )

    def _update_owned(self, job_id: int, attempts: int, **values) -> bool:
        """UPDATE the row only if it is still the claim `attempts` produced."""
        result = self._session.execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.PROCESSING.value,
                Job.attempts == attempts,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ── Reads ───────────────────────────────────────────────────

    def get(self, job_id: int) -> Optional[Job]:
        return self._session.execute(
            select(Job).where(Job.id == job_id)
        ).scalar_one_or_none()

    def list_page(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Job], int]:
        """
        Return one page of jobs (newest first) plus the total match count.

        Two queries: a COUNT for the total, then the OFFSET/LIMIT page.
        """
        conditions = []
        if status:
            conditions.append(Job.status == status)
        if job_type:
            conditions.append(Job.job_type == job_type)

        total = self._session.execute(
            select(func.count(Job.id)).where(*conditions)
        ).scalar() or 0

        jobs = self._session.execute(
            select(Job)
            .where(*conditions)
            .order_by(Job.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return list(jobs), total

    def count_by_status(self) -> dict[str, int]:
        """Job counts per status; statuses with no rows report 0."""
        rows = self._session.execute(
            select(Job.status, func.count(Job.id)).group_by(Job.status)
        ).all()
        found = {status: count for status, count in rows}
        return {s.value: int(found.get(s.value, 0)) for s in JobStatus}
