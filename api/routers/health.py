"""
Health check endpoint.

Checks that the jobs table is reachable (a stats query) and that Redis
answers a ping. Load balancers and orchestrators use this to decide whether
the service is ready for traffic.
"""

from fastapi import APIRouter, Depends
from redis import Redis

from api.dependencies import get_queue, get_redis
from worker.service import QueueService

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(
    queue: QueueService = Depends(get_queue),
    redis: Redis = Depends(get_redis),
) -> dict:
    stats = queue.get_stats()
    redis.ping()
    return {"status": "healthy", "database": "ok", "redis": "ok", "queue": stats}
