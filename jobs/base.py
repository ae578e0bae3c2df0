"""
Handler contract.

A handler receives the decoded payload and the job id and reports how it went
with a JobResult instead of raising:

    JobResult.success()                                   → job completed
    JobResult.failure("SMTP timeout")                     → retried with backoff
    JobResult.failure("template missing", ErrorKind.PERMANENT) → dead-lettered now

Returning None counts as success. Raising is still tolerated: the executor
catches the exception and treats it as a transient failure, so a buggy
handler can never leave a job stuck in `processing`.

Handlers come in two shapes, both accepted by HandlerRegistry:
- a plain callable: fn(payload, job_id) -> JobResult | None
- a subclass of AbstractJobHandler, which also names its own job_type
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Union

from models.enums import ErrorKind


@dataclass(frozen=True)
class JobError:
    """Why a job failed. message is truncated before it is stored."""
    message: str
    kind: ErrorKind = ErrorKind.TRANSIENT

    @property
    def permanent(self) -> bool:
        return self.kind is ErrorKind.PERMANENT


@dataclass(frozen=True)
class JobResult:
    error: Optional[JobError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "JobResult":
        return cls()

    @classmethod
    def failure(cls, message: str, kind: ErrorKind = ErrorKind.TRANSIENT) -> "JobResult":
        return cls(error=JobError(message=message, kind=kind))


class AbstractJobHandler(ABC):

    @abstractmethod
    def run(self, payload: dict, job_id: int) -> Optional[JobResult]:
        """
        Execute the job.

        Args:
            payload: the decoded map passed to add_job().
            job_id: id of the job row, useful for logging and idempotency keys.

        Returns:
            JobResult (or None for success).
        """
        ...

    @property
    @abstractmethod
    def job_type(self) -> str:
        """Unique job type string this handler serves (e.g. 'webhook')."""
        ...

    def __call__(self, payload: dict, job_id: int) -> Optional[JobResult]:
        return self.run(payload, job_id)


HandlerFunc = Callable[[dict, int], Optional[JobResult]]
Handler = Union[AbstractJobHandler, HandlerFunc]
