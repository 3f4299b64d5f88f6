"""Tests for the bulk-clear admin endpoint."""

from carefile import config


async def _patient_exists(async_client, patient_id) -> bool:
    resp = await async_client.get(f"/api/patients/{patient_id}")
    return resp.status_code == 200


async def test_clean_db_requires_token(async_client, patient):
    resp = await async_client.post("/api/admin/clean-db")
    assert resp.status_code == 401
    assert await _patient_exists(async_client, patient["id"])


async def test_clean_db_rejects_wrong_token(async_client, patient):
    resp = await async_client.post("/api/admin/clean-db", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert await _patient_exists(async_client, patient["id"])


async def test_clean_db_rejects_non_bearer_scheme(async_client, patient):
    resp = await async_client.post("/api/admin/clean-db", headers={"Authorization": "test-admin-secret"})
    assert resp.status_code == 401


async def test_clean_db_fails_closed_without_secret(async_client, patient, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_SECRET_KEY", "")
    resp = await async_client.post("/api/admin/clean-db", headers={"Authorization": "Bearer "})
    assert resp.status_code == 401
    assert await _patient_exists(async_client, patient["id"])


async def test_clean_db(async_client, case, admin_headers):
    await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "note"})
    await async_client.post(f"/api/cases/{case['id']}/documents", json={"fileName": "a.pdf", "fileType": "application/pdf"})

    resp = await async_client.post("/api/admin/clean-db", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["deleted"] == {"notes": 1, "documents": 1, "cases": 1, "patients": 1, "users": 1}

    resp = await async_client.get("/api/patients")
    assert resp.json()["patients"] == []

    # Patient codes start over
    resp = await async_client.post("/api/patients", json={"fullName": "New Start"})
    assert resp.json()["patientCode"] == "IN0001"
