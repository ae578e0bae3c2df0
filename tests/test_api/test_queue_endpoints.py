"""
API tests for the HTTP-triggered dispatch and cleanup endpoints.
"""

import pytest


@pytest.mark.asyncio
async def test_process_runs_one_cycle(client, calls):
    await client.post("/jobs/", json={"job_type": "record", "data": {"n": 1}})
    await client.post("/jobs/", json={"job_type": "no_such_handler"})

    response = await client.post("/queue/process")

    assert response.status_code == 200
    data = response.json()
    assert data["claimed"] == 2
    assert data["completed"] == 1
    assert data["dead_lettered"] == 1
    assert data["refill_requested"] is False
    assert len(calls) == 1

    stats = (await client.get("/jobs/stats")).json()
    assert stats["completed"] == 1
    assert stats["dead_letter"] == 1


@pytest.mark.asyncio
async def test_process_on_empty_queue(client):
    response = await client.post("/queue/process")
    assert response.status_code == 200
    assert response.json()["claimed"] == 0
    assert response.json()["job_ids"] == []


@pytest.mark.asyncio
async def test_dead_lettered_job_shows_its_error(client):
    job_id = (await client.post("/jobs/", json={"job_type": "no_such_handler"})).json()["id"]
    await client.post("/queue/process")

    job = (await client.get(f"/jobs/{job_id}")).json()
    assert job["status"] == "dead_letter"
    assert "No handler registered" in job["last_error"]


@pytest.mark.asyncio
async def test_cleanup_reports_counts(client):
    response = await client.post("/queue/cleanup")

    assert response.status_code == 200
    assert response.json() == {"recovered": 0, "dead_lettered": 0, "purged": 0}
