"""
Shared types for the dispatch side of the queue.

ClaimedJob is a lightweight data transfer object (DTO): a snapshot of the
fields the executor and failure policy need, taken at claim time. It does NOT
hold the ORM object, so execution never touches a session that might have
been closed, and tests can build one without a database.

AbstractDispatchTrigger is how the service asks for an early dispatch cycle
after it claimed a full batch. Who actually runs that cycle depends on the
deployment: the long-lived DispatchLoop wakes itself up, a cron-style
one-shot run drains in place, tests just count the requests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ClaimedJob:
    """
    A job this worker owns, as it looked right after the claim.

    attempts already includes the claim that produced this snapshot.
    payload is still the raw serialized string; the executor decodes it.
    """
    job_id: int
    job_type: str
    payload: str
    attempts: int
    max_attempts: int


class AbstractDispatchTrigger(ABC):

    @abstractmethod
    def request_dispatch(self, delay_seconds: float) -> None:
        """Ask for another dispatch cycle roughly delay_seconds from now."""
        ...


class NullTrigger(AbstractDispatchTrigger):
    """Ignores refill requests; the next scheduled cycle picks up the backlog."""

    def request_dispatch(self, delay_seconds: float) -> None:
        return None
