import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# In-memory DB and no external API keys for tests
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""
os.environ["GOOGLE_REFRESH_TOKEN"] = ""
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["DATABASE_URL"] = ""
os.environ["DUMMY_MODE"] = "false"
os.environ["ADMIN_SECRET_KEY"] = "test-admin-secret"

from carefile.database import close_db, init_db
from carefile.main import app
from carefile.services.analysis_queue import analysis_queue

ADMIN_SECRET = "test-admin-secret"


class FakeLLM:
    """Stands in for the LLM client; records every request."""

    def __init__(self, reply: str = "## Summary\nStable patient.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    def available(self) -> bool:
        return True

    async def generate_text(self, **kwargs) -> str:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.reply


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import carefile.database as db_mod

    # Close any existing connection
    if db_mod._db is not None:
        await db_mod._db.close()
    db_mod._db = None

    # Override module-level config directly (avoids fragile importlib.reload)
    db_mod.DATABASE_PATH = ":memory:"
    db_mod.DATABASE_URL = ""

    await init_db()
    database = await db_mod.get_db()
    yield database
    await analysis_queue.stop()
    await close_db()


@pytest.fixture
def client(db):
    """Provide a synchronous TestClient for WebSocket tests."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(db):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def fake_llm(monkeypatch):
    """Route analysis and invoice prompts to a FakeLLM."""
    fake = FakeLLM()
    monkeypatch.setattr("carefile.services.analysis.get_llm_client", lambda: fake)
    return fake


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}


@pytest_asyncio.fixture
async def patient(async_client):
    resp = await async_client.post("/api/patients", json={
        "fullName": "Jean Dupont",
        "nationality": "French",
        "passportNumber": "FR1234567",
        "dateOfBirth": "1990-06-15",
        "gender": "M",
    })
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def case(async_client, patient):
    resp = await async_client.post("/api/cases", json={"patientId": patient["id"]})
    assert resp.status_code == 201
    return resp.json()
