"""PDF rendering of compliance reports."""

from __future__ import annotations

import io
import textwrap
from collections import defaultdict
from typing import Protocol

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure

from compliance_monitor.schemas.reports import Report, ReportOptions
from compliance_monitor.services.numbers import format_currency, format_number

PAGE_SIZE = (8.5, 11)  # US Letter, inches
MARGIN_X = 0.07
LINE_HEIGHT = 0.022
WRAP_WIDTH = 95

PRIMARY_COLOR = "#1e40af"
SECONDARY_COLOR = "#64748b"
RISK_COLORS = {"low": "#16a34a", "medium": "#f59e0b", "high": "#dc2626"}

REPORT_TYPE_TITLES = {
    "compliance_analysis": "Compliance Analysis Report",
    "risk_assessment": "Risk Assessment Report",
    "donor_analysis": "Donor Analysis Report",
}


class ReportRenderer(Protocol):
    def render(self, report: Report, options: ReportOptions) -> bytes: ...


class _Page:
    """Cursor that writes lines top-down on a letter-sized figure."""

    def __init__(self) -> None:
        self.figure = Figure(figsize=PAGE_SIZE)
        self.y = 0.94

    def heading(self, text: str, size: int = 14) -> None:
        self.y -= LINE_HEIGHT * 0.5
        self.figure.text(MARGIN_X, self.y, text, fontsize=size, fontweight="bold", color=PRIMARY_COLOR)
        self.y -= LINE_HEIGHT * 1.4

    def line(self, text: str, color: str = "black", size: int = 10) -> None:
        for chunk in textwrap.wrap(text, WRAP_WIDTH) or [""]:
            self.figure.text(MARGIN_X, self.y, chunk, fontsize=size, color=color)
            self.y -= LINE_HEIGHT

    @property
    def full(self) -> bool:
        return self.y < 0.08


class MatplotlibPdfRenderer:
    """Render a report to PDF bytes with matplotlib's PDF backend.

    Produces a text summary page and, when visualizations are requested and
    the organization has grants, a grants-by-year chart page. Figures are
    built without pyplot, so none outlive a render even when it fails.
    """

    def render(self, report: Report, options: ReportOptions) -> bytes:
        sections = set(options.sections) if options.sections else None
        buffer = io.BytesIO()
        with PdfPages(buffer) as pdf:
            for figure in self._text_pages(report, sections):
                pdf.savefig(figure)
            if options.include_visualizations and report.data.grants:
                figure = self._grants_chart(report)
                pdf.savefig(figure)
            info = pdf.infodict()
            info["Title"] = f"{REPORT_TYPE_TITLES.get(report.report_type, 'Report')} - {report.organization.name}"
            info["Subject"] = report.report_type
            info["Creator"] = "Compliance Monitor"
        return buffer.getvalue()

    def _text_pages(self, report: Report, sections: set[str] | None) -> list[Figure]:
        def wanted(name: str) -> bool:
            return sections is None or name in sections

        pages = [_Page()]
        page = pages[0]
        page.figure.text(
            0.5, page.y, "Compliance Report", fontsize=22, color=PRIMARY_COLOR, ha="center"
        )
        page.y -= LINE_HEIGHT * 1.6
        page.figure.text(
            0.5,
            page.y,
            REPORT_TYPE_TITLES.get(report.report_type, report.report_type),
            fontsize=12,
            color=SECONDARY_COLOR,
            ha="center",
        )
        page.y -= LINE_HEIGHT * 1.5

        lines: list[tuple[str, str, str]] = []  # (kind, text, color)
        lines.append(("heading", "Organization Information", PRIMARY_COLOR))
        lines.append(("line", f"Name: {report.organization.name}", "black"))
        if report.organization.ein:
            lines.append(("line", f"EIN: {report.organization.ein}", "black"))
        if report.organization.mission:
            lines.append(("line", f"Mission: {report.organization.mission}", "black"))
        lines.append(
            (
                "line",
                f"Report ID: {report.id}  |  Year: {report.year}  |  "
                f"Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M UTC')}",
                SECONDARY_COLOR,
            )
        )

        summary = report.summary
        if wanted("summary"):
            lines.append(("heading", "Executive Summary", PRIMARY_COLOR))
            lines.append(("line", f"Total grants: {summary.total_grants}", "black"))
            lines.append(("line", f"Total funding: {format_currency(summary.total_funding)}", "black"))
            lines.append(("line", f"Average grant size: {format_currency(round(summary.avg_grant_size, 2))}", "black"))

        if wanted("risk_analysis"):
            lines.append(("heading", "Risk Analysis", PRIMARY_COLOR))
            lines.append(
                ("line", f"Risk level: {summary.risk_level.upper()}", RISK_COLORS[summary.risk_level])
            )
            for label, value in (
                ("Risk score", summary.risk_score),
                ("Dependency ratio", summary.dependency_ratio),
                ("Transparency index", summary.transparency_index),
            ):
                rendered = format_number(value) if value is not None else "N/A"
                lines.append(("line", f"{label}: {rendered}", "black"))

        if wanted("compliance_status"):
            lines.append(("heading", "Key Findings", PRIMARY_COLOR))
            lines.extend(("line", f"- {finding}", "black") for finding in report.key_findings)

        if wanted("recommendations") and report.recommendations is not None:
            lines.append(("heading", "Recommendations", PRIMARY_COLOR))
            if report.recommendations:
                lines.extend(
                    ("line", f"{i}. {rec}", "black") for i, rec in enumerate(report.recommendations, 1)
                )
            else:
                lines.append(("line", "No recommendations at this time.", SECONDARY_COLOR))

        if wanted("grants") and report.data.grants:
            lines.append(("heading", "Grants", PRIMARY_COLOR))
            for grant in report.data.grants:
                status = "confirmed" if grant.confirmed else "unconfirmed"
                lines.append(("line", f"{grant.year}: {format_currency(grant.amount)} ({status})", "black"))

        for kind, text, color in lines:
            if page.full:
                page = _Page()
                pages.append(page)
            if kind == "heading":
                page.heading(text)
            else:
                page.line(text, color=color)

        return [p.figure for p in pages]

    def _grants_chart(self, report: Report) -> Figure:
        by_year: dict[int, float] = defaultdict(float)
        for grant in report.data.grants:
            by_year[grant.year] += grant.amount
        years = sorted(by_year)

        fig = Figure(figsize=PAGE_SIZE)
        ax = fig.subplots()
        bars = ax.bar([str(y) for y in years], [by_year[y] for y in years], color=PRIMARY_COLOR, alpha=0.85)
        for bar, year in zip(bars, years):
            ax.text(
                bar.get_x() + bar.get_width() / 2.0,
                bar.get_height(),
                format_currency(by_year[year]),
                ha="center",
                va="bottom",
                fontsize=9,
            )
        ax.set_title(f"Grant Funding by Year - {report.organization.name}", fontsize=14, color=PRIMARY_COLOR)
        ax.set_xlabel("Year")
        ax.set_ylabel("Funding (USD)")
        ax.grid(axis="y", alpha=0.3)
        return fig
