"""
Pydantic schemas for the /queue trigger endpoints.

DispatchResult: what one POST /queue/process cycle did.
CleanupResult: what one POST /queue/cleanup janitor pass did.
"""

from pydantic import BaseModel


class DispatchResult(BaseModel):
    claimed: int
    completed: int
    retried: int
    dead_lettered: int
    aborted: int
    claim_lost: int          # finished after the janitor had already recovered the job
    refill_requested: bool   # full batch claimed; call again soon to drain the backlog
    job_ids: list[int]


class CleanupResult(BaseModel):
    recovered: int       # stuck processing jobs returned to pending
    dead_lettered: int   # stuck jobs that had no attempts left
    purged: int          # terminal jobs deleted by retention
