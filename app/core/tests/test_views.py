"""
Tests for the health check endpoint.
"""

from unittest.mock import patch

from rest_framework.test import APIClient


class TestHealthCheck:
    def test_healthy(self, db):
        response = APIClient().get("/health/")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "channel_layer": "connected",
        }

    def test_database_down_is_unavailable(self, db):
        """
        Why it matters: Load balancers must stop routing to an instance without a database.
        """
        with patch("core.views._database_ok", return_value=False):
            response = APIClient().get("/health/")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_channel_layer_down_is_still_healthy(self, db):
        with patch("core.views._channel_layer_ok", return_value=False):
            response = APIClient().get("/health/")

        assert response.status_code == 200
        assert response.json()["channel_layer"] == "disconnected"
