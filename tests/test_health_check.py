from unittest.mock import patch

import pytest

from modules.core.models import OutboxEvent

pytestmark = pytest.mark.integration


class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_health_check_reports_services(self, client):
        data = client.get("/health").json()
        assert data["services"]["database"]["status"] == "up"
        assert data["services"]["cache"]["status"] == "up"
        assert "response_time_ms" in data["services"]["cache"]

    def test_cache_outage_returns_503(self, client):
        with patch("modules.core.views.cache") as cache:
            cache.set.side_effect = ConnectionError("down")
            response = client.get("/health")
        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["services"]["cache"] == {"status": "down"}

    def test_reports_outbox_backlog(self, client):
        OutboxEvent.objects.create(
            event_type="OrderCreated", payload={}, aggregate_id="x", topic="orders"
        )
        data = client.get("/health").json()
        assert data["services"]["database"]["outbox_pending"] == 1
