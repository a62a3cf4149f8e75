"""Unit tests for the HTTP surface."""

from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from tenant_escalation import main
from tenant_escalation.config import settings
from tenant_escalation.main import app, get_escalation_engine, get_smtp_connector
from tenant_escalation.models.work_order import WorkOrder, WorkOrderStatus
from tests.fakes import NOW, InMemoryRequestRepository, make_engine, make_request


@pytest.fixture
def client_for():
    """Build an HTTP client whose escalation engine is the given one."""

    def build(engine):
        app.dependency_overrides[get_escalation_engine] = lambda: engine
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield build
    app.dependency_overrides.clear()


class TestRunEndpoint:
    """Test the run-cycle endpoint."""

    @pytest.mark.asyncio
    async def test_run_returns_report(self, client_for, directory, sender):
        """A successful cycle returns the full report."""
        repo = InMemoryRequestRepository([
            make_request(id="wo-due"),
            make_request(id="wo-recent", created_at=NOW - timedelta(hours=6)),
        ])

        async with client_for(make_engine(repo, directory, sender)) as client:
            response = await client.post(f"{settings.API_V1_STR}/escalation/run")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["scanned"] == 2
        assert data["processed"] == 1
        assert data["message"] == "Processed 1 escalations"
        assert data["actions"][0]["request_id"] == "wo-due"
        assert data["actions"][0]["type"] == "reminder"
        assert data["actions"][0]["tier"] == 1
        assert data["errors"] == []

    @pytest.mark.asyncio
    async def test_run_with_nothing_to_do(self, client_for, directory, sender):
        """An empty store is a successful no-op."""
        engine = make_engine(InMemoryRequestRepository(), directory, sender)

        async with client_for(engine) as client:
            response = await client.post(f"{settings.API_V1_STR}/escalation/run")

        assert response.status_code == 200
        assert response.json()["message"] == "No work orders to escalate"
        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_run_failure_envelope(self, client_for, directory, sender):
        """A store that cannot be read yields a 500 failure envelope."""
        repo = InMemoryRequestRepository()
        repo.list_errors.append(RuntimeError("database unavailable"))

        async with client_for(make_engine(repo, directory, sender)) as client:
            response = await client.post(f"{settings.API_V1_STR}/escalation/run")

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "database unavailable" in data["error"]
        assert set(data) == {"success", "error", "message"}

    @pytest.mark.asyncio
    async def test_run_before_startup_is_unavailable(self):
        """Without a started engine the endpoint answers 503."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post(f"{settings.API_V1_STR}/escalation/run")

        assert response.status_code == 503


class TestInfoEndpoints:
    """Test health and status endpoints."""

    @pytest.mark.asyncio
    async def test_health(self):
        """Health check reports the service version."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["version"] == settings.VERSION

    @pytest.mark.asyncio
    async def test_status_without_scheduler(self):
        """Status is disabled when no scheduler was started."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get(f"{settings.API_V1_STR}/escalation/status")

        assert response.status_code == 200
        assert response.json()["status"] == "disabled"


class StubConnector:
    """SMTP connector whose connection check returns a fixed answer."""

    def __init__(self, reachable: bool):
        self.reachable = reachable

    async def check_connection(self) -> bool:
        return self.reachable


@pytest.fixture
def health_client(monkeypatch, session_factory):
    """HTTP client with the database and SMTP checks pointed at test doubles."""

    def build(smtp_reachable=True, session_source=None):
        monkeypatch.setattr(main, "get_db_session", session_source or session_factory)
        app.dependency_overrides[get_smtp_connector] = lambda: StubConnector(smtp_reachable)
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield build
    app.dependency_overrides.clear()


class TestDetailedHealth:
    """Test the component health endpoint."""

    @pytest.mark.asyncio
    async def test_all_components_healthy(self, health_client, session_factory):
        """Database and SMTP checks both pass."""
        async with session_factory() as session:
            session.add(WorkOrder(
                id="wo-1",
                title="Broken intercom",
                status=WorkOrderStatus.AWAITING_RESPONSIBLE_PARTY,
                created_at=NOW - timedelta(days=1),
            ))
            await session.commit()

        async with health_client() as client:
            response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["overall_status"] == "healthy"
        assert data["components"]["database"]["awaiting_work_orders"] == 1
        assert data["components"]["smtp"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unreachable_smtp_is_degraded(self, health_client):
        """An SMTP outage degrades but does not fail the service."""
        async with health_client(smtp_reachable=False) as client:
            response = await client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["overall_status"] == "degraded"

    @pytest.mark.asyncio
    async def test_database_outage_is_critical(self, health_client):
        """A failing database check answers 503."""

        @asynccontextmanager
        async def broken_session():
            raise RuntimeError("database unavailable")
            yield

        async with health_client(session_source=broken_session) as client:
            response = await client.get("/health/detailed")

        assert response.status_code == 503
        data = response.json()
        assert data["overall_status"] == "critical"
        assert "database unavailable" in data["components"]["database"]["error"]
