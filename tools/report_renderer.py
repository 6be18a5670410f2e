"""
Adherence Report Renderer
Renders adherence stats and history into a PDF document
"""

import io
from xml.sax.saxutils import escape
from typing import Any, Dict

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def render_adherence_report(report: Dict[str, Any]) -> bytes:
    """
    Build the PDF for a report produced by ReportService.build_report.
    Returns the document bytes.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        title="Adherence Report",
    )
    styles = getSampleStyleSheet()
    stats = report["stats"]

    story = [
        Paragraph("Medication Adherence Report", styles["Title"]),
        Paragraph(f"Patient: {escape(report['patient_name'])}", styles["Normal"]),
        Paragraph(f"Period: {report['start_date']} to {report['end_date']}", styles["Normal"]),
        Spacer(1, 0.25 * inch),
        Paragraph(
            f"Adherence rate: <b>{stats['rate']}%</b> "
            f"({stats['taken']} taken, {stats['missed']} missed, "
            f"{stats['skipped']} skipped of {stats['total']} doses)",
            styles["Normal"],
        ),
        Spacer(1, 0.25 * inch),
    ]

    rows = [["Date", "Medication", "Status"]]
    for entry in report["history"]:
        rows.append([entry["taken_at"], entry["medication_name"], entry["status"]])

    if len(rows) == 1:
        story.append(Paragraph("No doses recorded in this period.", styles["Italic"]))
    else:
        table = Table(rows, colWidths=[2.2 * inch, 3 * inch, 1.5 * inch], repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2C3E50")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F4F6F7")]),
        ]))
        story.append(table)

    doc.build(story)
    return buffer.getvalue()
