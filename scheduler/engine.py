"""
Dispatch loop — the in-process stand-in for the external scheduler.

In production something periodic has to call process_queue() (every minute)
and cleanup_dead_jobs() (daily). DispatchLoop is that something when the
worker runs as a long-lived process:

    ┌───────────────────────── DispatchLoop thread ─────────────────────────┐
    │  every JANITOR_INTERVAL      → service.cleanup_dead_jobs()            │
    │  every WORKER_POLL_INTERVAL  → service.process_queue()                │
    │  refill requested            → service.process_queue() after delay    │
    └───────────────────────────────────────────────────────────────────────┘

It is also the service's dispatch trigger: when a cycle claims a full batch,
the service calls request_dispatch(refill_delay) and the loop wakes up early
instead of waiting for the next interval. That drains a backlog much faster
than the fixed interval would.

For cron-style deployments (one process per tick) use drain(): it runs a
cycle and keeps going, after the refill delay, for as long as each cycle
fills its batch.

Several loops on several hosts may run at once; the claim engine makes that
safe, the loop itself coordinates nothing.
"""

import logging
import threading
import time
from typing import Callable, Optional

from scheduler.base import AbstractDispatchTrigger

logger = logging.getLogger(__name__)


class DispatchLoop(AbstractDispatchTrigger):

    def __init__(
        self,
        service,
        poll_interval: float,
        janitor_interval: float,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._service = service
        self._poll_interval = poll_interval
        self._janitor_interval = janitor_interval
        self._sleep = sleep
        self._refill_at: Optional[float] = None
        self._lock = threading.Lock()
        self._wake = threading.Event()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        # The loop is the service's trigger from now on
        service.trigger = self

    # ── Trigger ─────────────────────────────────────────────────

    def request_dispatch(self, delay_seconds: float) -> None:
        due = time.monotonic() + max(delay_seconds, 0.0)
        with self._lock:
            if self._refill_at is None or due < self._refill_at:
                self._refill_at = due
        self._wake.set()

    def _take_refill(self) -> Optional[float]:
        with self._lock:
            due, self._refill_at = self._refill_at, None
        return due

    # ── One-shot (cron) ─────────────────────────────────────────

    def drain(self, max_cycles: Optional[int] = None) -> int:
        """
        Run dispatch cycles until one comes back with a partial batch.

        Returns the number of cycles run. 25 pending jobs with batch_size=10
        take 3 cycles: 10 (full, refill), 10 (full, refill), 5 (done).
        """
        cycles = 0
        while True:
            self._take_refill()
            self._service.process_queue()
            cycles += 1

            due = self._take_refill()
            if due is None or (max_cycles is not None and cycles >= max_cycles):
                return cycles
            self._sleep(max(0.0, due - time.monotonic()))

    # ── Long-lived loop ─────────────────────────────────────────

    def start(self) -> None:
        """Start the loop in a daemon thread."""
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, name="dispatch-loop", daemon=True)
        self._thread.start()
        logger.info(
            f"Dispatch loop started (poll every {self._poll_interval:g}s, "
            f"cleanup every {self._janitor_interval:g}s)"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop. It finishes its current cycle and exits."""
        self._running = False
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run_loop(self) -> None:
        now = time.monotonic()
        next_dispatch = now
        next_cleanup = now  # first pass recovers jobs left behind by a previous crash

        while self._running:
            now = time.monotonic()

            if now >= next_cleanup:
                self._safe(self._service.cleanup_dead_jobs, "Cleanup")
                next_cleanup = now + self._janitor_interval

            with self._lock:
                refill_due = self._refill_at is not None and now >= self._refill_at
            if refill_due or now >= next_dispatch:
                self._take_refill()
                self._safe(self._service.process_queue, "Dispatch")
                next_dispatch = time.monotonic() + self._poll_interval

            with self._lock:
                deadlines = [next_dispatch, next_cleanup]
                if self._refill_at is not None:
                    deadlines.append(self._refill_at)
            timeout = max(0.0, min(deadlines) - time.monotonic())
            self._wake.wait(timeout)
            self._wake.clear()

        logger.info("Dispatch loop stopped")

    def _safe(self, fn: Callable, label: str) -> None:
        try:
            fn()
        except Exception as e:
            logger.error(f"{label} cycle error: {e}", exc_info=True)
