"""
FastAPI application factory.

This file:
1. Creates the FastAPI app
2. Runs startup logic (build the QueueService, connect to Redis)
3. Registers all routers (jobs, queue, health)
4. Runs shutdown logic (close connections)

The app is a producer and an inspection surface. It can also serve as an
HTTP-triggered scheduler (POST /queue/process, POST /queue/cleanup) for
platforms whose cron can only make HTTP calls.

To run:  uvicorn api.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis import Redis

from config.settings import settings
from api.routers import health, jobs, queue
from worker.errors import InvalidArgument
from worker.main import build_service, configure_logging

configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup (before yield) and shutdown (after yield).

    Startup:
    - Creates the jobs table if it doesn't exist
    - Builds the one QueueService this process uses
    - Connects to Redis (health checks)

    Shutdown:
    - Closes Redis connection
    """
    # ── Startup ─────────────────────────────────────────────────
    app.state.queue = build_service(settings)
    app.state.redis = Redis.from_url(settings.redis_url)
    logger.info(f"API ready — handlers: {', '.join(app.state.queue.registry.job_types)}")

    yield

    # ── Shutdown ────────────────────────────────────────────────
    app.state.redis.close()
    logger.info("API shut down")


async def invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="Job Queue",
        description="Durable, priority-aware job queue with retry, dead-letter and stuck-job recovery",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(InvalidArgument, invalid_argument_handler)

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(queue.router)

    return app


# This is what uvicorn imports: `uvicorn api.main:app`
app = create_app()
