"""
Pydantic schemas for the /jobs endpoints.

These are NOT database models — they define the HTTP API contract:
- JobCreate: what a producer sends to enqueue a job (request body)
- JobResponse: one job as stored (response body)
- JobListResponse: paginated list of jobs
- QueueStats: counts per status

FastAPI validates incoming data against these automatically.
If someone sends priority="urgent", FastAPI returns a 422 before our code runs.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from models.enums import JobPriority
from models.job import JOB_TYPE_MAX_LENGTH
from worker.service import MAX_DELAY_SECONDS


class JobCreate(BaseModel):
    """Request body for POST /jobs/."""

    job_type: str = Field(
        ...,
        min_length=1,
        max_length=JOB_TYPE_MAX_LENGTH,
        examples=["webhook"],
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        examples=[{"url": "https://hooks.example.com/forms", "json": {"submission_id": 123}}],
    )
    priority: JobPriority = JobPriority.MEDIUM
    delay_seconds: int = Field(
        default=0,
        ge=0,
        le=MAX_DELAY_SECONDS,
        description="Seconds to wait before the job becomes eligible",
    )


class JobResponse(BaseModel):
    """One job row, with the payload decoded back into a map."""

    id: int
    job_type: str
    payload: dict[str, Any]
    priority: str
    status: str
    attempts: int
    max_attempts: int
    scheduled_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    # from_attributes=True tells Pydantic to read from SQLAlchemy model attributes
    model_config = {"from_attributes": True}

    @field_validator("payload", mode="before")
    @classmethod
    def decode_payload(cls, value):
        # Stored as serialized JSON text
        if isinstance(value, (str, bytes)):
            return json.loads(value) if value else {}
        return value


class JobListResponse(BaseModel):
    """Paginated list of jobs — returned by GET /jobs/."""

    jobs: list[JobResponse]
    total: int       # total matching jobs (ignoring pagination)
    page: int
    page_size: int


class QueueStats(BaseModel):
    """Counts per status — returned by GET /jobs/stats."""

    pending: int
    processing: int
    completed: int
    dead_letter: int
