"""
Simulated workload job.

Handy for demos and tests because:
- You control exactly how long it takes (duration parameter)
- You control whether it fails (fail_probability parameter)
- You control whether a failure is worth retrying (permanent parameter)

Example payloads:
    {"duration": 3.0}                                     → sleeps 3 seconds, succeeds
    {"duration": 1.0, "fail_probability": 0.5}            → fails 50% of the time, retried
    {"fail_probability": 1.0}                             → fails every attempt, dead-letters after max_attempts
    {"fail_probability": 1.0, "permanent": true}          → dead-letters on the first attempt
"""

import random
import time

from jobs.base import AbstractJobHandler, JobResult
from models.enums import ErrorKind


class SleepJob(AbstractJobHandler):

    def run(self, payload: dict, job_id: int) -> JobResult:
        duration = float(payload.get("duration", 1.0))
        fail_probability = float(payload.get("fail_probability", 0.0))

        # Check for simulated failure BEFORE sleeping
        if random.random() < fail_probability:
            kind = ErrorKind.PERMANENT if payload.get("permanent") else ErrorKind.TRANSIENT
            return JobResult.failure(
                f"Simulated failure (fail_probability={fail_probability})", kind
            )

        time.sleep(duration)
        return JobResult.success()

    @property
    def job_type(self) -> str:
        return "sleep"
