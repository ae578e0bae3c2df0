"""
Tests for JobExecutor: handler lookup, payload decoding, result mapping, and
what happens when the outcome can't be written.
"""

from sqlalchemy.exc import OperationalError

from jobs.base import JobResult
from models.enums import ErrorKind, JobOutcome, JobStatus
from models.repository import JobRepository
from scheduler.base import ClaimedJob
from scheduler.claim import ClaimEngine
from worker.executor import JobExecutor
from worker.retry import FailurePolicy


def _executor(session_factory, registry, events, clock):
    policy = FailurePolicy(base_retry_delay_seconds=60, error_max_length=65535, events=events)
    return JobExecutor(session_factory, registry, policy, events, clock)


def _claim(service, session_factory, clock, job_type, data=None):
    service.add_job(job_type, data or {})
    with session_factory() as session:
        [job] = ClaimEngine().claim(session, clock(), batch_size=1)
        session.commit()
    return job


def test_success_marks_completed(service, session_factory, registry, events, clock, load_job, calls):
    job = _claim(service, session_factory, clock, "record", {"k": "v"})

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.COMPLETED
    assert calls == [(job.job_id, {"k": "v"})]
    assert load_job(job.job_id).status == JobStatus.COMPLETED.value
    assert len(events.completed) == 1
    assert events.completed[0][2] >= 0


def test_none_result_counts_as_success(service, session_factory, registry, events, clock, load_job):
    registry.register("quiet", lambda payload, job_id: None)
    job = _claim(service, session_factory, clock, "quiet")

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.COMPLETED


def test_unexpected_return_value_is_a_failure(service, session_factory, registry, events, clock, load_job):
    registry.register("sloppy", lambda payload, job_id: "done")
    job = _claim(service, session_factory, clock, "sloppy")

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.RETRY_SCHEDULED
    assert "expected JobResult" in load_job(job.job_id).last_error


def test_permanent_result_dead_letters(service, session_factory, registry, events, clock, load_job):
    registry.register(
        "hopeless", lambda payload, job_id: JobResult.failure("bad address", ErrorKind.PERMANENT)
    )
    job = _claim(service, session_factory, clock, "hopeless")

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.DEAD_LETTERED
    assert load_job(job.job_id).last_error == "bad address"


def test_undecodable_payload_dead_letters(session_factory, registry, events, clock, load_job, service):
    job = _claim(service, session_factory, clock, "record")
    broken = ClaimedJob(job.job_id, "record", "{not json", job.attempts, job.max_attempts)

    outcome = _executor(session_factory, registry, events, clock).execute(broken)

    assert outcome is JobOutcome.DEAD_LETTERED
    assert "Undecodable payload" in load_job(job.job_id).last_error


def test_storage_error_leaves_job_processing(
    service, session_factory, registry, events, clock, load_job, monkeypatch
):
    job = _claim(service, session_factory, clock, "record")

    def broken_update(self, job_id, attempts, now):
        raise OperationalError("UPDATE jobs", {}, Exception("database is gone"))

    monkeypatch.setattr(JobRepository, "mark_completed", broken_update)

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.ABORTED
    assert load_job(job.job_id).status == JobStatus.PROCESSING.value
    assert events.completed == []


def test_exception_object_as_failure_message_is_retried(
    service, session_factory, registry, events, clock, load_job
):
    registry.register("sloppy_failure", lambda payload, job_id: JobResult.failure(ValueError("smtp down")))
    job = _claim(service, session_factory, clock, "sloppy_failure")

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.RETRY_SCHEDULED
    row = load_job(job.job_id)
    assert row.status == JobStatus.PENDING.value
    assert row.last_error == "smtp down"


def test_permanent_kind_survives_message_coercion(service, session_factory, registry, events, clock, load_job):
    registry.register(
        "sloppy_permanent",
        lambda payload, job_id: JobResult.failure(KeyError("template"), ErrorKind.PERMANENT),
    )
    job = _claim(service, session_factory, clock, "sloppy_permanent")

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.DEAD_LETTERED


def test_completion_after_recovery_leaves_new_owner_alone(
    service, session_factory, registry, events, clock, load_job
):
    job = _claim(service, session_factory, clock, "record")
    clock.advance(301)
    service.cleanup_dead_jobs()  # janitor takes the job back while we "run"

    outcome = _executor(session_factory, registry, events, clock).execute(job)

    assert outcome is JobOutcome.CLAIM_LOST
    row = load_job(job.job_id)
    assert row.status == JobStatus.PENDING.value
    assert row.completed_at is None
    assert events.completed == []
