"""Report generation and download endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.concurrency import run_in_threadpool

from compliance_monitor.errors import ComplianceError, PermissionDenied, ReportNotFound
from compliance_monitor.schemas.reports import PdfReport, ReportEnvelope, ReportGenerationRequest
from compliance_monitor.security import (
    SecurityContext,
    enforce_report_rate_limit,
    ensure_org_access,
    require_permission,
)
from compliance_monitor.services.report_storage import LocalReportStorage

router = APIRouter(tags=["reports"])


@router.post("/report/generate", response_model=ReportEnvelope)
async def generate_report(
    request: Request,
    response: Response,
    body: ReportGenerationRequest,
    context: SecurityContext = Depends(require_permission("report:generate")),
    _rate_limited: None = Depends(enforce_report_rate_limit),
) -> ReportEnvelope:
    """Generate a compliance report; PDF output is uploaded and returned as a signed URL."""
    ensure_org_access(context, body.org_id)
    audit = request.app.state.audit
    service = request.app.state.report_service

    try:
        report = await service.generate(body.org_id, body.report_type, body.year, body.options)
    except ComplianceError as exc:
        await run_in_threadpool(
            audit.record,
            request,
            context,
            "report_generate",
            "report",
            "failure",
            org_id=body.org_id,
            details={"report_type": body.report_type, "error": exc.title},
        )
        raise

    remaining = getattr(request.state, "rate_limit_remaining", None)
    if remaining is not None:
        response.headers["X-RateLimit-Remaining"] = str(remaining)

    await run_in_threadpool(
        audit.record,
        request,
        context,
        "report_generate",
        "report",
        "success",
        org_id=body.org_id,
        details={"report_id": report.id, "report_type": body.report_type, "format": report.format},
    )

    if isinstance(report, PdfReport):
        message = f"Successfully generated PDF report for {report.organization.name}"
    else:
        message = f"Successfully generated {body.report_type} report for {report.organization.name}"
    return ReportEnvelope(success=True, data=report, message=message)


@router.get("/reports/files/{file_path:path}")
def download_report(
    request: Request,
    file_path: str,
    expires: int = Query(...),
    signature: str = Query(..., min_length=1),
) -> Response:
    """Serve a stored report when the signed link is valid."""
    storage = request.app.state.storage
    if not isinstance(storage, LocalReportStorage):
        raise ReportNotFound(file_path)
    if not storage.verify(file_path, expires, signature):
        raise PermissionDenied("Invalid or expired link")
    content = storage.read(file_path)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{file_path.rsplit("/", 1)[-1]}"'},
    )
