"""
Job handler registry — maps job_type strings to handlers.

When the executor picks up a claimed job it knows only the job_type string
("webhook", "generate_pdf", ...). This registry does the lookup.

The registry is an object, built once in the composition root and injected
into the service. QueueService freezes it on the first dispatch cycle, so the
set of handlers can't drift while jobs are being executed.
"""

from typing import Optional

from jobs.base import AbstractJobHandler, Handler
from worker.errors import HandlerRegistrationError


class HandlerRegistry:

    def __init__(self):
        self._handlers: dict[str, Handler] = {}
        self._frozen = False

    def register(self, job_type: str, handler: Handler) -> None:
        """Map job_type to handler. Replaces an earlier handler for the same type."""
        if self._frozen:
            raise HandlerRegistrationError(
                f"Cannot register '{job_type}': registry is frozen once dispatch has started"
            )
        if not isinstance(job_type, str) or not job_type.strip():
            raise HandlerRegistrationError("job_type must be a non-empty string")
        if not callable(handler):
            raise HandlerRegistrationError(f"Handler for '{job_type}' is not callable")
        self._handlers[job_type] = handler

    def register_handler(self, handler: AbstractJobHandler) -> None:
        """Register a class-based handler under its own job_type."""
        self.register(handler.job_type, handler)

    def get(self, job_type: str) -> Optional[Handler]:
        return self._handlers.get(job_type)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def job_types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, job_type: str) -> bool:
        return job_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
