"""Production hardening tests.

Covers: health checks, CORS, rate limiting, environment configuration,
structured logging, error mapping, security headers, the application factory,
and migrations.
"""

from __future__ import annotations

import inspect
import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from compliance_monitor.app import build_storage, build_store, create_app
from compliance_monitor.clock import SystemClock
from compliance_monitor.config import Settings, TokenGrant, get_settings
from compliance_monitor.errors import (
    AlertNotFound,
    AuthenticationRequired,
    OrganizationNotFound,
    PermissionDenied,
    ReportDeliveryError,
    ReportNotFound,
    ReportRateLimited,
    ReportValidationError,
    StoreError,
    UpstreamError,
)
from compliance_monitor.middleware import (
    CONTENT_SECURITY_POLICY,
    SECURITY_HEADERS,
    configure_structured_logging,
    get_limiter,
    lifespan,
    status_for,
)
from compliance_monitor.services.report_storage import LocalReportStorage, SupabaseReportStorage
from compliance_monitor.routers import alerts, health, metrics, reports, risk
from compliance_monitor.sql_store import SqlDataStore
from compliance_monitor.store import DataStore, data_store

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))


class UnreachableStore(DataStore):
    """Store whose backend is down."""

    def ping(self):
        raise StoreError("ping", "connection refused")

    def get_organization(self, org_id):
        raise StoreError("get_organization", "connection refused", org_id=org_id)


# ─── Test 1: Health check endpoints ──────────────────────────────────────────

class TestHealthChecks:
    """Tests for health check endpoints."""

    def test_basic_health_check(self, client):
        """GET /health should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["environment"] == "development"
        assert data["store_backend"] == "memory"
        assert len(data["dependencies"]) >= 1

    def test_readiness_checks_store(self, client):
        """GET /health/ready should check the data store."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        names = {d["name"] for d in data["dependencies"]}
        assert names == {"app", "store"}

    def test_readiness_reports_unreachable_store(self, settings):
        client = TestClient(create_app(settings, store=UnreachableStore()))
        data = client.get("/health/ready").json()
        assert data["status"] == "unhealthy"
        store = next(d for d in data["dependencies"] if d["name"] == "store")
        assert store["status"] == "unhealthy"
        assert "connection refused" in store["details"]

    def test_liveness_check(self, client):
        """GET /health/live should return alive status."""
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_latency_reported(self, client):
        for dependency in client.get("/health/ready").json()["dependencies"]:
            assert dependency["latency_ms"] >= 0

    def test_health_needs_no_token(self, client):
        assert client.get("/health").status_code == 200


# ─── Test 2: CORS configuration ─────────────────────────────────────────────

class TestCORSConfiguration:
    """Tests for CORS middleware configuration."""

    def test_cors_allows_configured_origin(self, settings):
        client = TestClient(create_app(settings))
        response = client.options(
            "/api/alerts",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "PATCH",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_cors_rejects_unconfigured_origin(self, settings):
        client = TestClient(create_app(settings))
        response = client.options(
            "/health",
            headers={
                "Origin": "http://evil.example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        allow_origin = response.headers.get("access-control-allow-origin", "")
        assert "evil.example.com" not in allow_origin

    def test_cors_multiple_origins(self):
        settings = Settings(allowed_origins="http://localhost:3000, https://app.example.com")
        assert settings.allowed_origins_list == ["http://localhost:3000", "https://app.example.com"]


# ─── Test 3: Rate limiting setup ────────────────────────────────────────────

class TestRateLimitingSetup:
    """The default per-IP limiter and the report limiter are both installed."""

    def test_limiter_on_app_state(self, app):
        assert hasattr(app.state, "limiter")
        assert hasattr(app.state, "report_limiter")

    def test_get_limiter(self, settings):
        limiter = get_limiter(settings)
        assert limiter is not None


# ─── Test 4: Environment configuration ──────────────────────────────────────

class TestEnvironmentConfig:
    """Tests for environment variable management."""

    def test_defaults(self):
        settings = Settings()
        assert settings.app_name == "Compliance Monitor"
        assert settings.rate_limit_default == "100/minute"
        assert settings.report_rate_limit == "10/minute"
        assert settings.signed_url_ttl_seconds == 3600
        assert settings.alert_dedup_window_days == 7
        assert settings.store_backend == "memory"
        assert settings.report_storage_backend == "local"
        assert "change" in settings.secret_key.lower()

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("COMPLIANCE_REPORT_RATE_LIMIT", "3/minute")
        monkeypatch.setenv("COMPLIANCE_ENVIRONMENT", "staging")
        settings = get_settings()
        assert settings.report_rate_limit == "3/minute"
        assert settings.environment == "staging"

    def test_access_tokens_from_json_env(self, monkeypatch):
        monkeypatch.setenv(
            "COMPLIANCE_ACCESS_TOKENS",
            '{"tok": {"user_id": "u-1", "role": "client", "org_id": "org-a"}}',
        )
        grant = get_settings().access_tokens["tok"]
        assert grant == TokenGrant(user_id="u-1", role="client", org_id="org-a")

    def test_environment_validation(self):
        for env in ("development", "staging", "production"):
            assert Settings(environment=env).environment == env
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_backend_validation(self):
        with pytest.raises(ValidationError):
            Settings(store_backend="redis")
        with pytest.raises(ValidationError):
            Settings(report_storage_backend="s3")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            TokenGrant(user_id="u", role="admin")

    def test_env_file_example_exists(self):
        path = os.path.join(PROJECT_ROOT, ".env.example")
        assert os.path.exists(path), ".env.example file must exist"
        with open(path) as f:
            content = f.read()
        for var in (
            "COMPLIANCE_DATABASE_URL",
            "COMPLIANCE_SECRET_KEY",
            "COMPLIANCE_ENVIRONMENT",
            "COMPLIANCE_ACCESS_TOKENS",
            "COMPLIANCE_REPORT_STORAGE_BACKEND",
            "COMPLIANCE_API_PREFIX",
            "COMPLIANCE_DEBUG",
        ):
            assert var in content, f"{var} missing from .env.example"


# ─── Test 5: Backend selection ──────────────────────────────────────────────

class TestBackendSelection:
    """Settings choose the store and report storage implementations."""

    def test_memory_store_is_shared_singleton(self):
        assert build_store(Settings()) is data_store

    def test_sql_store(self):
        store = build_store(Settings(store_backend="sql", database_url="sqlite://"))
        assert isinstance(store, SqlDataStore)

    def test_local_storage(self):
        assert isinstance(build_storage(Settings(), SystemClock()), LocalReportStorage)

    def test_supabase_storage(self):
        settings = Settings(
            report_storage_backend="supabase",
            supabase_url="https://proj.supabase.co",
            supabase_service_key="key",
        )
        storage = build_storage(settings, SystemClock())
        assert isinstance(storage, SupabaseReportStorage)
        assert storage.bucket == "reports"


# ─── Test 6: Error mapping ──────────────────────────────────────────────────

class TestErrorMapping:
    """Named failures map to distinct HTTP statuses."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (OrganizationNotFound("x"), 404),
            (AlertNotFound("x"), 404),
            (ReportNotFound("x"), 404),
            (AuthenticationRequired(), 401),
            (PermissionDenied(), 403),
            (ReportRateLimited(30), 429),
            (ReportValidationError("year", "bad"), 400),
            (ReportDeliveryError("render_report", "boom"), 500),
            (StoreError("list_alerts", "timeout"), 502),
            (UpstreamError("call", "boom"), 502),
        ],
    )
    def test_status_for(self, error, status):
        assert status_for(error) == status

    def test_store_failure_is_502(self, settings, owner_headers):
        client = TestClient(create_app(settings, store=UnreachableStore()))
        response = client.post("/api/alerts/evaluate/org-hope", headers=owner_headers)
        assert response.status_code == 502
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Data store failure"
        assert "org-hope" in body["message"]

    def test_upstream_message_includes_context(self):
        error = StoreError("get_risk_score", "deadlock", org_id="org-hope")
        assert error.message == "get_risk_score failed for organization org-hope: deadlock"


# ─── Test 7: Structured logging and lifecycle ───────────────────────────────

class TestLoggingAndLifecycle:
    """Tests for structlog configuration and the lifespan handler."""

    def test_structured_logging_json(self):
        configure_structured_logging(Settings(log_format="json"))

    def test_structured_logging_console(self):
        configure_structured_logging(Settings(log_format="console"))

    def test_lifespan_is_callable(self):
        assert callable(lifespan)


# ─── Test 8: Application factory ────────────────────────────────────────────

class TestApplicationFactory:
    """Tests for the application factory pattern."""

    def test_create_app_returns_fastapi(self, settings):
        assert isinstance(create_app(settings), FastAPI)

    def test_custom_version(self, tmp_path):
        app = create_app(Settings(app_version="9.9.9", report_storage_dir=str(tmp_path)))
        assert app.version == "9.9.9"

    def test_all_routers_registered(self, app):
        routes = {r.path for r in app.routes}
        for path in (
            "/health",
            "/health/ready",
            "/health/live",
            "/api/alerts",
            "/api/alerts/evaluate",
            "/api/alerts/evaluate/{org_id}",
            "/api/report/generate",
            "/api/reports/files/{file_path:path}",
            "/api/metrics",
            "/api/organizations/{org_id}/risk-score",
        ):
            assert path in routes

    def test_openapi_schema(self, client):
        schema = client.get("/openapi.json").json()
        assert schema["info"]["title"] == "Compliance Monitor"
        assert schema["info"]["version"] == "1.0.0"

    def test_collaborators_on_state(self, app):
        for name in ("store", "storage", "alert_engine", "report_service", "audit", "clock"):
            assert hasattr(app.state, name)


# ─── Test 9: Database migrations ────────────────────────────────────────────

class TestDatabaseMigrations:
    """Tests for the alembic migration scripts."""

    def test_initial_migration_exists(self):
        path = os.path.join(PROJECT_ROOT, "alembic", "versions", "001_initial_schema.py")
        assert os.path.exists(path)

    def test_initial_migration_creates_all_tables(self):
        path = os.path.join(PROJECT_ROOT, "alembic", "versions", "001_initial_schema.py")
        with open(path) as f:
            content = f.read()
        for table in (
            "organizations",
            "daf_records",
            "donors",
            "filings_990",
            "grants",
            "risk_scores",
            "alerts",
            "audit_log",
        ):
            assert f'"{table}"' in content
        assert "uq_risk_scores_org_year" in content


# ─── Test 10: Error response shape ──────────────────────────────────────────

class TestErrorResponseShape:
    """Every failure, framework or domain, answers with success/error/message."""

    @staticmethod
    def assert_error_shape(response, status, error):
        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["error"] == error
        assert isinstance(body["message"], str) and body["message"]
        assert "detail" not in body

    def test_missing_token_is_401(self, client):
        response = client.get("/api/alerts")
        self.assert_error_shape(response, 401, "Unauthorized")
        assert response.json()["message"] == "Authentication required"

    def test_unknown_token_is_401(self, client):
        response = client.get("/api/alerts", headers={"Authorization": "Bearer nope"})
        self.assert_error_shape(response, 401, "Unauthorized")

    def test_missing_permission_is_403(self, client, client_headers, sample_org):
        response = client.post(f"/api/alerts/evaluate/{sample_org}", headers=client_headers)
        self.assert_error_shape(response, 403, "Forbidden")
        assert response.json()["message"] == "Insufficient permissions"

    def test_other_org_is_403(self, client, client_headers, other_org):
        response = client.get(f"/api/alerts?organization_id={other_org}", headers=client_headers)
        self.assert_error_shape(response, 403, "Forbidden")

    def test_unknown_route_is_404(self, client):
        self.assert_error_shape(client.get("/api/nowhere"), 404, "Not Found")

    def test_wrong_method_is_405(self, client, owner_headers):
        response = client.delete("/api/alerts", headers=owner_headers)
        self.assert_error_shape(response, 405, "Method Not Allowed")

    def test_report_limit_is_429_with_retry_after(self, make_client, owner_headers, sample_org):
        client = make_client(report_rate_limit="1/minute")
        client.post("/api/report/generate", json={"org_id": sample_org}, headers=owner_headers)
        response = client.post("/api/report/generate", json={"org_id": sample_org}, headers=owner_headers)
        self.assert_error_shape(response, 429, "Rate limit exceeded")
        assert int(response.headers["retry-after"]) >= 0
        assert response.headers["x-ratelimit-remaining"] == "0"

    def test_default_limit_is_429_in_same_shape(self, make_client):
        client = make_client(rate_limit_default="2/minute")
        for _ in range(2):
            assert client.get("/health/live").status_code == 200
        response = client.get("/health/live")
        self.assert_error_shape(response, 429, "Rate limit exceeded")

    def test_error_details_omitted_when_empty(self, client):
        assert "details" not in client.get("/api/alerts").json()


# ─── Test 11: Security headers ──────────────────────────────────────────────

class TestSecurityHeaders:
    """Hardening headers on every response."""

    def test_headers_on_success(self, client):
        response = client.get("/health")
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value
        assert response.headers["content-security-policy"] == CONTENT_SECURITY_POLICY

    def test_headers_on_error(self, client):
        response = client.get("/api/alerts")
        assert response.status_code == 401
        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_docs_have_no_csp(self, client):
        response = client.get("/docs")
        assert response.status_code == 200
        assert "content-security-policy" not in response.headers
        assert response.headers["x-frame-options"] == "DENY"


# ─── Test 12: API prefix and debug ──────────────────────────────────────────

class TestApiPrefixAndDebug:
    """``api_prefix`` mounts the API routers; ``debug`` reaches FastAPI."""

    def test_custom_prefix(self, make_client, owner_headers):
        client = make_client(api_prefix="/v2")
        assert client.get("/v2/alerts", headers=owner_headers).status_code == 200
        assert client.get("/api/alerts", headers=owner_headers).status_code == 404

    def test_health_is_never_prefixed(self, make_client):
        client = make_client(api_prefix="/v2")
        assert client.get("/health").status_code == 200

    def test_signed_links_follow_prefix(self, make_client, owner_headers, sample_grants):
        client = make_client(api_prefix="/v2")
        response = client.post(
            "/v2/report/generate",
            json={"org_id": "org-hope", "options": {"format": "pdf"}},
            headers=owner_headers,
        )
        assert response.status_code == 200
        url = response.json()["data"]["pdf_url"]
        assert "/v2/reports/files/" in url
        path = url.removeprefix("http://testserver")
        assert client.get(path).status_code == 200

    def test_debug_flag(self, tmp_path):
        app = create_app(Settings(debug=True, report_storage_dir=str(tmp_path)))
        assert app.debug is True
        assert create_app(Settings(report_storage_dir=str(tmp_path))).debug is False


# ─── Test 13: Threadpool handlers ───────────────────────────────────────────

class TestThreadpoolHandlers:
    """Handlers that touch the store or the engine are plain functions."""

    @pytest.mark.parametrize(
        "handler",
        [
            alerts.list_alerts,
            alerts.update_alert,
            alerts.evaluate_organization,
            alerts.evaluate_all_organizations,
            reports.download_report,
            health.readiness_check,
            metrics.dashboard_metrics,
            risk.update_risk_score,
        ],
    )
    def test_handler_is_sync(self, handler):
        assert not inspect.iscoroutinefunction(handler)
