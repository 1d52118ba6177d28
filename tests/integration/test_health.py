"""
Integration tests for health and utility endpoints.

Tests basic API health and functionality.
"""
from fastapi.testclient import TestClient

from ledgerlens import __version__


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check(self, client: TestClient):
        """Test health endpoint returns OK."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["timestamp"]

    def test_readiness(self, client: TestClient):
        response = client.get("/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["keyword_tables"] == "healthy"

    def test_readiness_with_missing_tables(self, client: TestClient, monkeypatch, temp_dir):
        from ledgerlens.config import get_settings

        monkeypatch.setenv("LEDGERLENS_KEYWORDS_PATH", str(temp_dir / "missing.yaml"))
        get_settings.cache_clear()

        data = client.get("/ready").json()

        assert data["status"] == "degraded"
        assert data["keyword_tables"] == "unhealthy"


class TestDocsEndpoint:
    """Tests for documentation endpoints."""

    def test_docs_accessible(self, client: TestClient):
        """Test Swagger docs are accessible."""
        response = client.get("/docs")

        assert response.status_code == 200

    def test_openapi_json(self, client: TestClient):
        """Test OpenAPI JSON schema is accessible."""
        response = client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()
        assert data["info"]["title"] == "LedgerLens API"
        assert "/api/v1/normalize" in data["paths"]
        assert "/api/v1/normalize/batch" in data["paths"]


class TestCorrelationHeaders:
    """Tests for correlation ID propagation."""

    def test_correlation_id_in_response(self, client: TestClient):
        """Test that correlation ID is returned."""
        response = client.get("/health")

        assert "X-Correlation-ID" in response.headers
        assert len(response.headers["X-Correlation-ID"]) > 0

    def test_custom_correlation_id(self, client: TestClient):
        """Test that custom correlation ID is echoed."""
        custom_id = "test-correlation-123"
        response = client.get(
            "/health",
            headers={"X-Correlation-ID": custom_id}
        )

        assert response.headers.get("X-Correlation-ID") == custom_id


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_preflight(self, client: TestClient):
        """Test CORS preflight request."""
        response = client.options(
            "/api/v1/normalize",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            }
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
