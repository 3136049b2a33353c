"""Report generation and delivery: aggregate, then render and publish PDFs."""

from __future__ import annotations

import re

import structlog
from fastapi.concurrency import run_in_threadpool

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.errors import ReportDeliveryError
from compliance_monitor.schemas.reports import PdfReport, Report, ReportOptions
from compliance_monitor.services.report_aggregator import build_report
from compliance_monitor.services.report_renderer import ReportRenderer
from compliance_monitor.services.report_storage import ReportStorage
from compliance_monitor.store import ComplianceStore

logger = structlog.get_logger()


def report_file_path(report: Report) -> str:
    """``{org_id}/{report_id}_{name}.pdf`` with non-alphanumerics in the name replaced."""
    safe_name = re.sub(r"[^a-zA-Z0-9]", "_", report.organization.name)
    return f"{report.org_id}/{report.id}_{safe_name}.pdf"


class ReportService:
    """Build reports and, for PDF output, render, upload, and sign them."""

    def __init__(
        self,
        store: ComplianceStore,
        renderer: ReportRenderer,
        storage: ReportStorage,
        clock: Clock | None = None,
        signed_url_ttl: int = 3600,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.storage = storage
        self.clock = clock or SystemClock()
        self.signed_url_ttl = signed_url_ttl

    async def generate(
        self,
        org_id: str,
        report_type: str,
        year: int | None = None,
        options: ReportOptions | None = None,
    ) -> Report:
        """Generate a report. Store reads and rendering run in the worker threadpool.

        Raises:
            ReportValidationError: the requested year is out of range.
            OrganizationNotFound: the organization does not exist.
            ReportDeliveryError: rendering, upload, or URL signing failed.
        """
        options = options or ReportOptions()
        report = await run_in_threadpool(
            build_report, self.store, org_id, report_type, year, options, clock=self.clock
        )
        if options.format != "pdf":
            return report
        return await self._publish_pdf(report, options)

    async def _publish_pdf(self, report: Report, options: ReportOptions) -> PdfReport:
        file_path = report_file_path(report)
        try:
            pdf_bytes = await run_in_threadpool(self.renderer.render, report, options)
        except ReportDeliveryError:
            raise
        except Exception as exc:
            logger.exception("report_render_failed", report_id=report.id, org_id=report.org_id)
            raise ReportDeliveryError("render_report", str(exc), org_id=report.org_id) from exc

        await self.storage.upload(file_path, pdf_bytes, content_type="application/pdf")
        pdf_url = await self.storage.create_signed_url(file_path, self.signed_url_ttl)

        logger.info(
            "report_published",
            report_id=report.id,
            org_id=report.org_id,
            file_path=file_path,
            size_bytes=len(pdf_bytes),
        )
        return PdfReport(**report.model_dump(), pdf_url=pdf_url, file_path=file_path)
