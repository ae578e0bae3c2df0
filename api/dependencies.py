"""
FastAPI dependency injection.

The QueueService and the Redis client are built once in the app's lifespan
and stored on app.state. Endpoints declare `queue: QueueService = Depends(get_queue)`
and receive that single instance; tests swap it out through
app.dependency_overrides without touching the lifespan.
"""

from fastapi import Request
from redis import Redis

from worker.service import QueueService


def get_queue(request: Request) -> QueueService:
    """Returns the QueueService created during startup."""
    return request.app.state.queue


def get_redis(request: Request) -> Redis:
    """Returns the Redis client stored on the app during startup."""
    return request.app.state.redis
