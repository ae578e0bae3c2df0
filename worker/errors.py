"""Exceptions raised by the queue to its callers."""


class QueueError(Exception):
    """Base class for queue errors."""


class InvalidArgument(QueueError, ValueError):
    """Rejected at enqueue time; the job was never stored."""


class HandlerRegistrationError(QueueError, RuntimeError):
    """Bad handler registration, or registration after dispatch started."""
