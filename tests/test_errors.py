"""Tests for classified service errors and their HTTP rendering."""

from carefile.errors import ConflictError, DependentStateError, NotFoundError, UnauthorizedError


def test_detail_is_the_message():
    assert NotFoundError("Case not found").detail == "Case not found"
    assert DependentStateError("Run an analysis first").status_code == 400
    assert UnauthorizedError("Unauthorized").status_code == 401


def test_conflict_detail_carries_existing():
    exc = ConflictError("Duplicate", existing={"id": "p1"})
    assert exc.status_code == 409
    assert exc.detail == {"message": "Duplicate", "existing": {"id": "p1"}}
    assert ConflictError("Duplicate").detail == {"message": "Duplicate", "existing": {}}


async def test_unauthorized_is_rendered_by_the_app(async_client):
    resp = await async_client.post("/api/admin/clean-db", headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Unauthorized"}


async def test_dependent_state_keeps_its_status_through_ai_routes(async_client, case, fake_llm):
    resp = await async_client.post("/api/ai/invoice", json={"caseId": case["id"]})
    assert resp.status_code == 400
    assert "Run an analysis" in resp.json()["detail"]
    assert fake_llm.calls == []
