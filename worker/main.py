"""
Worker process entry point and composition root.

Everything the queue needs is built here, once, from Settings:
engine → session factory → handler registry → events sink → QueueService.

Commands:
    python -m worker.main run       # long-lived: dispatch loop + janitor, Ctrl+C to stop
    python -m worker.main process   # one dispatch (cron, e.g. every minute); drains full batches
    python -m worker.main cleanup   # one janitor pass (cron, e.g. daily)
    python -m worker.main stats     # print counts per status as JSON

Any number of `run` processes (or overlapping `process` cron runs) may point
at the same database; the claim engine keeps them from double-running a job.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict
from typing import Optional

from redis import Redis

from config.settings import Settings, settings as default_settings
from jobs.registry import HandlerRegistry
from jobs.sleep_job import SleepJob
from jobs.webhook import WebhookJob
from models.base import build_engine, build_session_factory, create_tables
from scheduler.engine import DispatchLoop
from worker.events import QueueEvents, RedisQueueEvents
from worker.service import QueueService

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_registry() -> HandlerRegistry:
    """Handlers this deployment can run. Register new job types here."""
    registry = HandlerRegistry()
    registry.register_handler(SleepJob())
    registry.register_handler(WebhookJob())
    return registry


def build_events(settings: Settings) -> QueueEvents:
    if settings.EVENTS_TO_REDIS:
        return RedisQueueEvents(Redis.from_url(settings.redis_url))
    return QueueEvents()


def build_service(settings: Settings, registry: Optional[HandlerRegistry] = None) -> QueueService:
    # Safe to call on every start; a no-op once the table exists
    engine = build_engine(settings.database_url)
    create_tables(engine)

    return QueueService(
        build_session_factory(engine),
        registry or build_registry(),
        config=settings.queue_config(),
        events=build_events(settings),
    )


def run_forever(service: QueueService, settings: Settings) -> None:
    loop = DispatchLoop(
        service,
        poll_interval=settings.WORKER_POLL_INTERVAL,
        janitor_interval=settings.JANITOR_INTERVAL,
    )
    loop.start()

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = threading.Event()

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info(f"Worker running with handlers: {', '.join(service.registry.job_types)}")
    shutdown_event.wait()
    loop.stop()
    logger.info("Worker process exited")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="worker", description="Durable job queue worker")
    parser.add_argument(
        "command",
        choices=["run", "process", "cleanup", "stats"],
        help="run: long-lived loop | process: one dispatch | cleanup: one janitor pass | stats: counts",
    )
    args = parser.parse_args(argv)

    settings = default_settings
    configure_logging(settings)
    service = build_service(settings)

    if args.command == "run":
        run_forever(service, settings)
    elif args.command == "process":
        loop = DispatchLoop(
            service,
            poll_interval=settings.WORKER_POLL_INTERVAL,
            janitor_interval=settings.JANITOR_INTERVAL,
        )
        cycles = loop.drain()
        logger.info(f"Processed queue in {cycles} cycle(s)")
    elif args.command == "cleanup":
        report = service.cleanup_dead_jobs()
        print(json.dumps(asdict(report)))
    else:
        print(json.dumps(service.get_stats()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
