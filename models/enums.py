"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("pending", not "JobStatus.PENDING")
- They work as SQLAlchemy column values
- They work as FastAPI query parameters
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "pending"          # waiting for scheduled_at to pass and a worker to claim it
    PROCESSING = "processing"    # claimed by exactly one worker
    COMPLETED = "completed"      # handler succeeded (terminal)
    DEAD_LETTER = "dead_letter"  # retries exhausted or permanent failure (terminal)

    @classmethod
    def terminal(cls) -> tuple["JobStatus", ...]:
        return (cls.COMPLETED, cls.DEAD_LETTER)


class JobPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Claim order: lower rank is claimed first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    JobPriority.HIGH: 0,
    JobPriority.MEDIUM: 1,
    JobPriority.LOW: 2,
}


class ErrorKind(str, enum.Enum):
    TRANSIENT = "transient"  # worth retrying with backoff
    PERMANENT = "permanent"  # no retry can succeed (missing handler, bad payload, 4xx...)


class JobOutcome(str, enum.Enum):
    """What happened to one claimed job during a dispatch cycle."""
    COMPLETED = "completed"
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"
    ABORTED = "aborted"        # outcome could not be recorded; left for the janitor
    CLAIM_LOST = "claim_lost"  # janitor recovered the job while its handler ran
