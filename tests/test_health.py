"""Tests for health endpoints."""

from fastapi.testclient import TestClient


def test_health_endpoint(test_client: TestClient) -> None:
    """Test the basic health endpoint."""
    response = test_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


def test_liveness_endpoint(test_client: TestClient) -> None:
    """Test the liveness probe endpoint."""
    response = test_client.get("/health/live")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


def test_root_endpoint(test_client: TestClient) -> None:
    """Test the root endpoint."""
    response = test_client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert "name" in data
    assert "version" in data
    assert "docs" in data


def test_health_reports_stubbed_components(test_client: TestClient) -> None:
    """Stub adapters are reported as not live."""
    response = test_client.get("/health")

    assert response.json()["components"] == {"llm": False, "transcripts": False, "payments": False}


def test_readiness_endpoint(test_client: TestClient) -> None:
    """Test the readiness probe against the test database."""
    response = test_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"ready": True, "database": True, "broker": None}


def test_request_id_is_generated(test_client: TestClient) -> None:
    """Requests without an id get one echoed back."""
    response = test_client.get("/health/live")

    assert len(response.headers["X-Request-ID"]) == 32


def test_readiness_reports_unreachable_broker(test_client: TestClient, monkeypatch) -> None:
    """A Redis broker that cannot be pinged makes the service not ready."""
    import redis

    from tldw.config import settings

    def refuse(*args, **kwargs):
        raise redis.ConnectionError("connection refused")

    monkeypatch.setattr(settings, "celery_broker_url", "redis://broker.invalid:6379/0")
    monkeypatch.setattr(redis.Redis, "ping", refuse)

    data = test_client.get("/health/ready").json()

    assert data == {"ready": False, "database": True, "broker": False}
