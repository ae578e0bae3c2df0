"""
Outbound webhook job — delivers a JSON body to a third-party HTTP endpoint.

This is the typical "unreliable side effect" the queue exists for: the
remote end may be down, slow or rate limiting, and the producer shouldn't
wait for it.

Example payload:
    {
        "url": "https://hooks.example.com/forms",
        "method": "POST",
        "json": {"submission_id": 123},
        "headers": {"X-Signature": "..."},
        "timeout": 10
    }

How responses map to retry behaviour:
    2xx                       → success
    408, 429, 5xx             → transient failure (retried with backoff)
    other 4xx                 → permanent failure (dead-lettered, retrying won't help)
    network error / timeout   → transient failure
    missing url               → permanent failure
"""

import logging
from typing import Optional

import httpx

from jobs.base import AbstractJobHandler, JobResult
from models.enums import ErrorKind

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}


class WebhookJob(AbstractJobHandler):

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, client: Optional[httpx.Client] = None):
        # Injected client lets tests use httpx.MockTransport
        self._client = client or httpx.Client(timeout=self.DEFAULT_TIMEOUT)

    def run(self, payload: dict, job_id: int) -> JobResult:
        url = payload.get("url")
        if not url:
            return JobResult.failure("Missing 'url' in payload", ErrorKind.PERMANENT)

        method = str(payload.get("method", "POST")).upper()
        headers = {"X-Job-Id": str(job_id), **payload.get("headers", {})}

        try:
            response = self._client.request(
                method,
                url,
                json=payload.get("json"),
                headers=headers,
                timeout=payload.get("timeout", self.DEFAULT_TIMEOUT),
            )
        except httpx.HTTPError as e:
            return JobResult.failure(f"{method} {url} failed: {e}")

        if response.is_success:
            logger.debug(f"Webhook {method} {url} → {response.status_code}")
            return JobResult.success()

        message = f"{method} {url} returned {response.status_code}: {response.text[:500]}"
        code = response.status_code
        if code >= 500 or code in RETRYABLE_STATUS_CODES:
            return JobResult.failure(message)
        return JobResult.failure(message, ErrorKind.PERMANENT)

    def close(self) -> None:
        self._client.close()

    @property
    def job_type(self) -> str:
        return "webhook"
