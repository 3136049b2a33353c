"""Compliance Monitor: FastAPI application factory."""

from __future__ import annotations

from datetime import timedelta

from fastapi import FastAPI

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.config import Settings, get_settings
from compliance_monitor.middleware import (
    configure_cors,
    configure_error_handlers,
    configure_rate_limiting,
    configure_request_logging,
    configure_security_headers,
    lifespan,
)
from compliance_monitor.routers import alerts, health, metrics, reports, risk
from compliance_monitor.security import AuditTrail, RateLimiter
from compliance_monitor.services.alert_engine import AlertEngine
from compliance_monitor.services.report_renderer import MatplotlibPdfRenderer, ReportRenderer
from compliance_monitor.services.report_service import ReportService
from compliance_monitor.services.report_storage import (
    LocalReportStorage,
    ReportStorage,
    SupabaseReportStorage,
)
from compliance_monitor.sql_store import SqlDataStore
from compliance_monitor.store import ComplianceStore, data_store


def build_store(settings: Settings) -> ComplianceStore:
    """The shared in-memory store, or a SQL store for ``store_backend=sql``."""
    if settings.store_backend == "sql":
        return SqlDataStore.from_url(settings.database_url, create_schema=settings.environment == "development")
    return data_store


def build_storage(settings: Settings, clock: Clock) -> ReportStorage:
    if settings.report_storage_backend == "supabase":
        return SupabaseReportStorage(
            settings.supabase_url,
            settings.supabase_service_key,
            bucket=settings.reports_bucket,
        )
    return LocalReportStorage(
        settings.report_storage_dir,
        base_url=settings.public_base_url,
        secret_key=settings.secret_key,
        files_path=f"{settings.api_prefix}/reports/files",
        clock=clock,
    )


def create_app(
    settings: Settings | None = None,
    store: ComplianceStore | None = None,
    clock: Clock | None = None,
    renderer: ReportRenderer | None = None,
    storage: ReportStorage | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()
    if clock is None:
        clock = SystemClock()
    if store is None:
        store = build_store(settings)
    if storage is None:
        storage = build_storage(settings, clock)

    app = FastAPI(
        title=settings.app_name,
        description="Compliance monitoring for nonprofit oversight: alerts, reports, and risk metrics",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Collaborators on app state
    app.state.settings = settings
    app.state.clock = clock
    app.state.store = store
    app.state.storage = storage
    app.state.alert_engine = AlertEngine(
        store, clock=clock, dedup_window=timedelta(days=settings.alert_dedup_window_days)
    )
    app.state.report_service = ReportService(
        store,
        renderer=renderer or MatplotlibPdfRenderer(),
        storage=storage,
        clock=clock,
        signed_url_ttl=settings.signed_url_ttl_seconds,
    )
    app.state.report_limiter = RateLimiter(settings.report_rate_limit)
    app.state.audit = AuditTrail(store, clock)

    # Middleware
    configure_request_logging(app)
    configure_cors(app, settings)
    configure_rate_limiting(app, settings)
    configure_security_headers(app)
    configure_error_handlers(app)

    # Routers
    app.include_router(health.router)
    for router in (alerts.router, reports.router, metrics.router, risk.router):
        app.include_router(router, prefix=settings.api_prefix)

    return app


# Default app instance for uvicorn
app = create_app()
