"""
Tests for the claim engine: eligibility, ordering, and the guarded update
that keeps two workers from owning the same job.

SQLite ignores FOR UPDATE SKIP LOCKED, so these tests exercise the second
layer (the conditional UPDATE) on its own, which is the harder case.
"""

from datetime import timedelta

from models.base import build_engine, build_session_factory, create_tables
from models.enums import JobStatus
from models.job import Job
from scheduler.claim import ClaimEngine
from worker.service import QueueService


def _insert(session_factory, clock, **overrides):
    values = dict(
        job_type="record",
        payload="{}",
        priority="medium",
        status=JobStatus.PENDING.value,
        attempts=0,
        max_attempts=3,
        scheduled_at=clock.now,
        created_at=clock.now,
    )
    values.update(overrides)
    with session_factory() as session:
        job = Job(**values)
        session.add(job)
        session.commit()
        return job.id


def test_claim_moves_jobs_to_processing(session_factory, clock, load_job):
    job_id = _insert(session_factory, clock)

    with session_factory() as session:
        claimed = ClaimEngine().claim(session, clock(), batch_size=10)
        session.commit()

    assert [j.job_id for j in claimed] == [job_id]
    assert claimed[0].attempts == 1
    assert claimed[0].payload == "{}"
    job = load_job(job_id)
    assert job.status == JobStatus.PROCESSING.value
    assert job.attempts == 1
    assert job.started_at == clock.now


def test_ineligible_jobs_are_not_selected(session_factory, clock):
    _insert(session_factory, clock, scheduled_at=clock.now + timedelta(seconds=1))
    _insert(session_factory, clock, status=JobStatus.PROCESSING.value)
    _insert(session_factory, clock, status=JobStatus.COMPLETED.value)
    _insert(session_factory, clock, status=JobStatus.DEAD_LETTER.value)
    _insert(session_factory, clock, attempts=3, max_attempts=3)

    with session_factory() as session:
        assert ClaimEngine().select_candidates(session, clock(), 10) == []


def test_candidates_ordered_by_priority_schedule_then_id(session_factory, clock):
    earlier = clock.now - timedelta(minutes=5)
    low = _insert(session_factory, clock, priority="low", scheduled_at=earlier)
    medium_a = _insert(session_factory, clock, priority="medium")
    medium_b = _insert(session_factory, clock, priority="medium")
    medium_early = _insert(session_factory, clock, priority="medium", scheduled_at=earlier)
    high = _insert(session_factory, clock, priority="high")

    with session_factory() as session:
        rows = ClaimEngine().select_candidates(session, clock(), 10)

    assert [r.id for r in rows] == [high, medium_early, medium_a, medium_b, low]


def test_batch_size_limits_claim(session_factory, clock):
    for _ in range(5):
        _insert(session_factory, clock)

    with session_factory() as session:
        claimed = ClaimEngine().claim(session, clock(), batch_size=2)
        session.commit()

    assert len(claimed) == 2


def test_second_claim_of_same_row_loses(session_factory, clock):
    job_id = _insert(session_factory, clock)
    engine = ClaimEngine()

    with session_factory() as session:
        assert engine.try_claim(session, job_id, 0, clock()) is True
        assert engine.try_claim(session, job_id, 0, clock()) is False
        session.commit()


def test_stale_attempts_snapshot_loses(session_factory, clock):
    job_id = _insert(session_factory, clock, attempts=1)

    with session_factory() as session:
        assert ClaimEngine().try_claim(session, job_id, 0, clock()) is False


def test_racing_workers_claim_each_job_once(tmp_path, clock):
    """Both workers read the same candidates; only one wins each row."""
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables(engine)
    factory = build_session_factory(engine)
    ids = [_insert(factory, clock) for _ in range(3)]

    worker_a, worker_b = ClaimEngine(), ClaimEngine()
    session_a, session_b = factory(), factory()
    try:
        seen_a = worker_a.select_candidates(session_a, clock(), 10)
        seen_b = worker_b.select_candidates(session_b, clock(), 10)
        assert [r.id for r in seen_a] == [r.id for r in seen_b] == ids

        won_a = [r.id for r in seen_a if worker_a.try_claim(session_a, r.id, r.attempts, clock())]
        session_a.commit()
        won_b = [r.id for r in seen_b if worker_b.try_claim(session_b, r.id, r.attempts, clock())]
        session_b.commit()
    finally:
        session_a.close()
        session_b.close()
        engine.dispose()

    assert won_a == ids
    assert won_b == []


def test_many_services_share_one_queue(session_factory, registry, clock, calls):
    services = [QueueService(session_factory, registry, clock=clock) for _ in range(4)]
    for i in range(30):
        services[0].add_job("record", {"i": i})

    while any(s.process_queue().claimed for s in services):
        pass

    executed = [job_id for job_id, _ in calls]
    assert len(executed) == 30
    assert len(set(executed)) == 30
