"""Tests for case, document and note endpoints."""


async def test_create_case(async_client, patient):
    resp = await async_client.post("/api/cases", json={"patientId": patient["id"]})
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["patientId"] == patient["id"]
    assert data["patient"]["fullName"] == "Jean Dupont"
    assert data["aiPreAnalysis"] is None
    assert data["documents"] == []
    assert data["notes"] == []


async def test_create_case_requires_patient_id(async_client):
    resp = await async_client.post("/api/cases", json={})
    assert resp.status_code == 400


async def test_create_case_unknown_patient(async_client):
    resp = await async_client.post("/api/cases", json={"patientId": "nonexistent-id"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Patient not found"}


async def test_list_cases_filters(async_client, patient, case):
    other = await async_client.post("/api/patients", json={"fullName": "Amina Benali"})
    other_case = await async_client.post("/api/cases", json={"patientId": other.json()["id"]})
    await async_client.patch(f"/api/cases/{other_case.json()['id']}", json={"status": "IN_PROGRESS"})

    resp = await async_client.get("/api/cases")
    assert resp.json()["pagination"]["total"] == 2

    resp = await async_client.get("/api/cases", params={"patientId": patient["id"]})
    cases = resp.json()["cases"]
    assert [c["id"] for c in cases] == [case["id"]]
    assert cases[0]["patient"] == {
        "id": patient["id"],
        "patientCode": patient["patientCode"],
        "fullName": "Jean Dupont",
    }

    resp = await async_client.get("/api/cases", params={"status": "IN_PROGRESS"})
    assert [c["id"] for c in resp.json()["cases"]] == [other_case.json()["id"]]


async def test_list_cases_rejects_unknown_status(async_client):
    resp = await async_client.get("/api/cases", params={"status": "ARCHIVED"})
    assert resp.status_code == 400


async def test_list_cases_counts(async_client, case):
    await async_client.post(f"/api/cases/{case['id']}/documents", json={"fileName": "a.pdf", "fileType": "application/pdf"})
    await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "First call"})
    await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "Second call"})

    resp = await async_client.get("/api/cases")
    item = resp.json()["cases"][0]
    assert item["documentCount"] == 1
    assert item["noteCount"] == 2


async def test_get_case(async_client, case):
    resp = await async_client.get(f"/api/cases/{case['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == case["id"]


async def test_get_case_not_found(async_client):
    resp = await async_client.get("/api/cases/nonexistent-id")
    assert resp.status_code == 404


async def test_update_case_status(async_client, case):
    resp = await async_client.patch(f"/api/cases/{case['id']}", json={"status": "IN_PROGRESS"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "IN_PROGRESS"

    resp = await async_client.patch(f"/api/cases/{case['id']}", json={"status": "COMPLETED"})
    assert resp.json()["status"] == "COMPLETED"


async def test_update_case_cannot_return_to_pending(async_client, case):
    await async_client.patch(f"/api/cases/{case['id']}", json={"status": "IN_PROGRESS"})
    resp = await async_client.patch(f"/api/cases/{case['id']}", json={"status": "PENDING"})
    assert resp.status_code == 400

    resp = await async_client.get(f"/api/cases/{case['id']}")
    assert resp.json()["status"] == "IN_PROGRESS"


async def test_update_case_pre_analysis(async_client, case):
    resp = await async_client.patch(f"/api/cases/{case['id']}", json={"aiPreAnalysis": "Edited by staff"})
    assert resp.json()["aiPreAnalysis"] == "Edited by staff"
    assert resp.json()["status"] == "PENDING"


async def test_add_and_list_documents(async_client, case):
    resp = await async_client.post(f"/api/cases/{case['id']}/documents", json={
        "fileName": "scan.pdf",
        "fileType": "application/pdf",
        "extractedText": "Glycémie: 7.5 mmol/L",
    })
    assert resp.status_code == 201
    doc = resp.json()
    assert doc["caseId"] == case["id"]
    assert doc["extractedText"] == "Glycémie: 7.5 mmol/L"

    resp = await async_client.get(f"/api/cases/{case['id']}/documents")
    assert resp.status_code == 200
    assert [d["id"] for d in resp.json()] == [doc["id"]]


async def test_add_document_requires_name_and_type(async_client, case):
    resp = await async_client.post(f"/api/cases/{case['id']}/documents", json={"fileName": "scan.pdf"})
    assert resp.status_code == 400


async def test_add_document_unknown_case(async_client):
    resp = await async_client.post("/api/cases/nonexistent-id/documents", json={"fileName": "a.png", "fileType": "image/png"})
    assert resp.status_code == 404


async def test_list_documents_unknown_case(async_client):
    resp = await async_client.get("/api/cases/nonexistent-id/documents")
    assert resp.status_code == 404


async def test_add_note_uses_default_author(async_client, case):
    resp = await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "Waiting for hospital reply"})
    assert resp.status_code == 201
    note = resp.json()
    assert note["author"] == {"name": "Admin", "role": "ADMIN"}

    # The synthesized admin is reused for later notes
    second = await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "Reply received"})
    assert second.json()["authorId"] == note["authorId"]


async def test_add_note_unknown_author(async_client, case):
    resp = await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "x", "authorId": "ghost"})
    assert resp.status_code == 404


async def test_add_note_requires_content(async_client, case):
    resp = await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": " "})
    assert resp.status_code == 400


async def test_list_notes(async_client, case):
    await async_client.post(f"/api/cases/{case['id']}/notes", json={"content": "one"})
    resp = await async_client.get(f"/api/cases/{case['id']}/notes")
    assert resp.status_code == 200
    assert [n["content"] for n in resp.json()] == ["one"]


async def test_list_notes_unknown_case(async_client):
    resp = await async_client.get("/api/cases/nonexistent-id/notes")
    assert resp.status_code == 404
