"""Tests for /admin endpoint.

Configuration visibility and runtime log level for operators.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from app.certverify.api_models import ErrorCode


class TestAdminEndpoint:
    """Tests for /admin configuration endpoint."""

    def test_admin_returns_all_config_categories(self):
        """Admin endpoint returns all configuration categories."""
        from app.main import app
        client = TestClient(app)

        response = client.get("/admin")
        assert response.status_code == 200

        data = response.json()
        assert set(data) == {"normative", "policy", "services", "environment"}

    def test_admin_normative_config(self):
        """Normative values are fixed by the verification contract."""
        from app.main import app
        client = TestClient(app)

        normative = client.get("/admin").json()["normative"]
        assert normative["signature_algorithm"] == "SHA256withRSA"
        assert normative["bulk_max_items_limit"] == 100
        assert normative["verification_code_pattern"] == r"^[A-Z0-9]{6,8}$"
        assert normative["certificate_hash_pattern"] == r"^[0-9a-fA-F]{64}$"

    def test_admin_policy_config(self):
        """Admin endpoint returns timeouts and bulk limits."""
        from app.main import app
        client = TestClient(app)

        policy = client.get("/admin").json()["policy"]
        assert isinstance(policy["lookup_timeout_seconds"], float)
        assert isinstance(policy["verification_timeout_seconds"], float)
        assert 1 <= policy["max_bulk_verification"] <= 100
        assert policy["bulk_concurrency"] >= 1
        assert policy["rate_limit_window_seconds"] > 0
        assert policy["rate_limit_max_requests"] >= 1
        assert 1 <= policy["bulk_rate_limit_max_requests"] <= policy["rate_limit_max_requests"]

    def test_admin_services_config(self):
        """Admin endpoint returns collaborator base URLs."""
        from app.main import app
        client = TestClient(app)

        services = client.get("/admin").json()["services"]
        assert services["certificate_service_url"].startswith("http")
        assert services["university_service_url"].startswith("http")

    def test_admin_environment_config(self):
        """Admin endpoint returns the effective log level."""
        from app.main import app
        client = TestClient(app)

        environment = client.get("/admin").json()["environment"]
        assert "log_level" in environment
        assert "log_level_name" in environment


class TestAdminEndpointDisabled:
    """Tests for admin endpoint when disabled."""

    def test_admin_disabled_returns_404(self, monkeypatch):
        """Admin endpoints return 404 when ADMIN_ENDPOINT_ENABLED=false."""
        monkeypatch.setenv("ADMIN_ENDPOINT_ENABLED", "false")

        # Reload the config module to pick up the new env var
        import importlib
        import app.core.config
        importlib.reload(app.core.config)

        import app.main
        client = TestClient(app.main.app)
        try:
            response = client.get("/admin")
            assert response.status_code == 404
            assert "disabled" in response.json()["detail"].lower()

            response = client.post("/admin/log-level", json={"level": "DEBUG"})
            assert response.status_code == 404
        finally:
            monkeypatch.setenv("ADMIN_ENDPOINT_ENABLED", "true")
            importlib.reload(app.core.config)


class TestLogLevelEndpoint:
    """Tests for POST /admin/log-level endpoint."""

    @pytest.fixture(autouse=True)
    def restore_root_level(self):
        root = logging.getLogger()
        saved = root.level
        yield
        root.setLevel(saved)

    @pytest.mark.parametrize(
        "level,expected",
        [("DEBUG", "DEBUG"), ("info", "INFO"), ("WARNING", "WARNING"), (" error ", "ERROR")],
    )
    def test_set_log_level(self, level, expected):
        """Level names are accepted case-insensitively."""
        from app.main import app
        client = TestClient(app)

        response = client.post("/admin/log-level", json={"level": level})
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["message"] == f"Log level set to {expected}"
        assert data["data"]["logLevel"] == expected

    def test_set_log_level_invalid_returns_400(self):
        """Invalid log level returns 400 in the error envelope."""
        from app.main import app
        client = TestClient(app)

        response = client.post("/admin/log-level", json={"level": "INVALID"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == ErrorCode.VALIDATION_FAILED
        assert "Invalid log level" in body["message"]

    def test_module_loggers_follow_root(self):
        """Service loggers inherit the new level."""
        from app.main import app
        client = TestClient(app)

        client.post("/admin/log-level", json={"level": "ERROR"})

        for name in ("certverify", "app.certverify.verify", "app.certverify.bulk"):
            assert logging.getLogger(name).getEffectiveLevel() == logging.ERROR

    def test_log_level_reflected_in_admin(self):
        """Changed log level is reflected in /admin response."""
        from app.main import app
        client = TestClient(app)

        client.post("/admin/log-level", json={"level": "DEBUG"})

        data = client.get("/admin").json()
        assert data["environment"]["log_level_name"] == "DEBUG"
