"""
Job endpoints.

POST /jobs/          → Enqueue a job (Producer API over HTTP)
GET  /jobs/          → List jobs with filtering + pagination
GET  /jobs/stats     → Counts per status
GET  /jobs/{job_id}  → One job, including last_error for dead-lettered jobs

The API layer is intentionally thin: validate input (Pydantic), call the
QueueService, shape the response. It never executes jobs.

Endpoints are plain `def`: the service uses sync SQLAlchemy sessions, and
FastAPI runs sync endpoints in its threadpool so they don't block the loop.
There is no cancel endpoint: once enqueued, a job runs or dead-letters.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_queue
from api.schemas.job import JobCreate, JobListResponse, JobResponse, QueueStats
from models.enums import JobStatus
from worker.service import QueueService

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobResponse, status_code=201)
def create_job(
    job_in: JobCreate,
    queue: QueueService = Depends(get_queue),
) -> JobResponse:
    """
    Enqueue a job.

    The row is stored as `pending` and returned immediately; a worker claims
    it once scheduled_at (now + delay_seconds) has passed.
    """
    job_id = queue.add_job(
        job_in.job_type,
        job_in.data,
        priority=job_in.priority,
        delay_seconds=job_in.delay_seconds,
    )
    return JobResponse.model_validate(queue.get_job(job_id))


@router.get("/", response_model=JobListResponse)
def list_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    job_type: Optional[str] = Query(None, description="Filter by job type"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Jobs per page"),
    queue: QueueService = Depends(get_queue),
) -> JobListResponse:
    jobs, total = queue.list_jobs(
        status=status.value if status else None,
        job_type=job_type,
        page=page,
        page_size=page_size,
    )
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=QueueStats)
def get_job_stats(queue: QueueService = Depends(get_queue)) -> QueueStats:
    return QueueStats(**queue.get_stats())


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: int,
    queue: QueueService = Depends(get_queue),
) -> JobResponse:
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobResponse.model_validate(job)
