"""
Queue trigger endpoints.

POST /queue/process → run one dispatch cycle now
POST /queue/cleanup → run one janitor pass now

For platforms where the only available scheduler is an HTTP cron. They do
exactly what `python -m worker.main process|cleanup` does, in the API
process. A dispatch cycle runs handlers inline, so the request lasts as long
as the batch does.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from api.dependencies import get_queue
from api.schemas.queue import CleanupResult, DispatchResult
from worker.service import QueueService

router = APIRouter(prefix="/queue", tags=["queue"])


@router.post("/process", response_model=DispatchResult)
def process_queue(queue: QueueService = Depends(get_queue)) -> DispatchResult:
    return DispatchResult(**asdict(queue.process_queue()))


@router.post("/cleanup", response_model=CleanupResult)
def cleanup_queue(queue: QueueService = Depends(get_queue)) -> CleanupResult:
    return CleanupResult(**asdict(queue.cleanup_dead_jobs()))
