"""Tests for the background analysis queue."""

import asyncio
from unittest.mock import patch

import pytest

from carefile.errors import NotFoundError, ValidationError
from carefile.models.ai import JobStatus
from carefile.models.patient import PatientCreate
from carefile.services import records
from carefile.services.analysis_queue import AnalysisQueue, analysis_queue
from carefile.services.event_bus import event_bus


async def _case_with_document(async_client, case):
    await async_client.post(f"/api/cases/{case['id']}/documents", json={
        "fileName": "scan.pdf",
        "fileType": "application/pdf",
        "extractedText": "Glycémie: 7.5 mmol/L",
    })
    return case["id"]


async def test_submit_and_complete(async_client, case, fake_llm):
    case_id = await _case_with_document(async_client, case)
    events = event_bus.subscribe(case_id)

    resp = await async_client.post("/api/ai/analyze/jobs", json={"caseId": case_id})
    assert resp.status_code == 202
    job = resp.json()
    assert job["status"] == JobStatus.QUEUED.value == "queued"
    assert job["caseId"] == case_id

    await analysis_queue.join()

    resp = await async_client.get(f"/api/ai/analyze/jobs/{job['jobId']}")
    assert resp.json()["status"] == "succeeded"
    assert resp.json()["finishedAt"] is not None

    resp = await async_client.get(f"/api/cases/{case_id}")
    assert resp.json()["status"] == "ANALYZED"
    assert resp.json()["aiPreAnalysis"] == fake_llm.reply

    event = events.get_nowait()
    assert event["type"] == "analysis_complete"
    assert event["case_id"] == case_id
    event_bus.unsubscribe(case_id, events)


async def test_failed_job_records_error(async_client, case, fake_llm):
    events = event_bus.subscribe(case["id"])

    resp = await async_client.post("/api/ai/analyze/jobs", json={"caseId": case["id"]})
    await analysis_queue.join()

    job = (await async_client.get(f"/api/ai/analyze/jobs/{resp.json()['jobId']}")).json()
    assert job["status"] == "failed"
    assert "No documents" in job["error"]

    event = events.get_nowait()
    assert event["type"] == "analysis_failed"
    event_bus.unsubscribe(case["id"], events)


async def test_submit_unknown_case(async_client):
    resp = await async_client.post("/api/ai/analyze/jobs", json={"caseId": "nonexistent-id"})
    assert resp.status_code == 404


async def test_submit_requires_case_id(async_client):
    resp = await async_client.post("/api/ai/analyze/jobs", json={})
    assert resp.status_code == 400


async def test_unknown_job(async_client):
    resp = await async_client.get("/api/ai/analyze/jobs/nonexistent-job")
    assert resp.status_code == 404


async def test_queue_lifecycle(db):
    queue = AnalysisQueue(workers=2)
    assert not queue.running
    queue.start()
    assert queue.running
    await queue.stop()
    assert not queue.running

    with pytest.raises(ValidationError):
        await queue.submit("")
    with pytest.raises(NotFoundError):
        await queue.submit("missing")
    assert not queue.running


async def _open_case(db) -> str:
    patient = await records.create_patient(db, PatientCreate(full_name="Lina Haddad"))
    return (await records.create_case(db, patient.id)).id


async def test_finished_jobs_are_bounded(db):
    case_id = await _open_case(db)
    queue = AnalysisQueue(max_jobs=3)

    async def analyze(case_id):
        return None

    with patch("carefile.services.analysis.analyze_case", analyze):
        jobs = [await queue.submit(case_id) for _ in range(5)]
        await queue.join()
    await queue.stop()

    assert len(queue) == 3
    assert [queue.get(job.job_id) for job in jobs[:2]] == [None, None]
    assert all(queue.get(job.job_id).status is JobStatus.SUCCEEDED for job in jobs[2:])


async def test_unfinished_jobs_are_never_forgotten(db):
    case_id = await _open_case(db)
    queue = AnalysisQueue(max_jobs=1)
    release = asyncio.Event()

    async def analyze(case_id):
        await release.wait()

    with patch("carefile.services.analysis.analyze_case", analyze):
        jobs = [await queue.submit(case_id) for _ in range(3)]
        await asyncio.sleep(0)
        assert len(queue) == 3
        assert {queue.get(job.job_id).status for job in jobs} <= {JobStatus.QUEUED, JobStatus.RUNNING}

        release.set()
        await queue.join()
    await queue.stop()

    assert len(queue) == 1
    assert queue.get(jobs[-1].job_id).status is JobStatus.SUCCEEDED


def test_job_status_finished():
    assert not JobStatus.QUEUED.finished
    assert not JobStatus.RUNNING.finished
    assert JobStatus.SUCCEEDED.finished
    assert JobStatus.FAILED.finished
