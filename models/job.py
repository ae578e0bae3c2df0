"""
Job ORM model — maps to the "jobs" table.

Key design decisions:
- Integer autoincrement primary key: producers get a small, monotonically
  assigned id back from add_job()
- payload is a Text column holding JSON: the queue stores it verbatim and
  never looks inside; only the handler decodes it
- priority is stored as its string value ("high"/"medium"/"low"); the claim
  query maps it to a rank with a CASE expression
- attempts + max_attempts drive the retry/dead-letter logic; max_attempts is
  stamped at enqueue time so config changes don't affect jobs in flight
- ix_jobs_claim covers the claim query's filter and sort columns
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, case, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.enums import JobPriority, JobStatus

JOB_TYPE_MAX_LENGTH = 100


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_claim", "status", "scheduled_at", "priority"),
    )

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type: Mapped[str] = mapped_column(String(JOB_TYPE_MAX_LENGTH), nullable=False)

    # ── Payload (immutable after insert) ────────────────────────
    payload: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    # ── Scheduling fields ───────────────────────────────────────
    priority: Mapped[str] = mapped_column(
        String(10), default=JobPriority.MEDIUM.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False
    )

    # ── Retry tracking ──────────────────────────────────────────
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Lifecycle timestamps ────────────────────────────────────
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Job {self.id} [{self.job_type}] {self.status} {self.attempts}/{self.max_attempts}>"


# ORDER BY expression: high → 0, medium → 1, low → 2 (unknown values sort last)
priority_rank = case(
    {p.value: p.rank for p in JobPriority},
    value=Job.priority,
    else_=len(JobPriority),
)
