# medicore/services/alerts_export.py
from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from medicore.schemas.alerts import AlertsReportOut

COLUMNS = [
    "Type", "Code", "Name", "Batch No", "Expiry Date", "Qty",
    "Reorder Level", "Total Qty",
]


def report_rows(report: AlertsReportOut) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for m in report.low_stock:
        rows.append({
            "Type": "LOW_STOCK",
            "Code": m.code,
            "Name": m.name,
            "Batch No": "",
            "Expiry Date": "",
            "Qty": "",
            "Reorder Level": str(m.reorder_level),
            "Total Qty": str(m.total_quantity),
        })
    for m in report.near_expiry:
        for b in m.batches:
            rows.append({
                "Type": "EXPIRED" if b.expiry_date <= report.as_of else "NEAR_EXPIRY",
                "Code": m.code,
                "Name": m.name,
                "Batch No": b.batch_no,
                "Expiry Date": b.expiry_date.isoformat(),
                "Qty": str(b.qty),
                "Reorder Level": "",
                "Total Qty": "",
            })
    return rows


def export_xlsx(rows: List[Dict[str, Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Alerts"

    ws.append(COLUMNS)
    for r in rows:
        ws.append([r.get(h, "") for h in COLUMNS])

    # autosize columns
    for i, h in enumerate(COLUMNS, start=1):
        col = get_column_letter(i)
        max_len = max(len(str(h)), 10)
        for cell in ws[col]:
            if cell.value is not None:
                max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[col].width = min(max_len + 2, 55)

    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def export_pdf(rows: List[Dict[str, Any]], title: str = "Pharmacy Stock Alerts") -> bytes:
    bio = BytesIO()
    c = canvas.Canvas(bio, pagesize=A4)
    w, h = A4

    x = 12 * mm
    y = h - 15 * mm

    c.setFont("Helvetica-Bold", 11)
    c.drawString(x, y, title)
    y -= 8 * mm

    if not rows:
        c.setFont("Helvetica", 8)
        c.drawString(x, y, "No alerts")
        c.showPage()
        c.save()
        return bio.getvalue()

    widths = [24 * mm, 22 * mm, 45 * mm, 25 * mm, 22 * mm, 16 * mm, 20 * mm, 18 * mm]

    def draw_row(vals: List[str], yy: float, bold: bool = False):
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 8)
        xx = x
        for i, v in enumerate(vals):
            c.drawString(xx, yy, (v or "")[:30])
            xx += widths[i]

    draw_row(COLUMNS, y, bold=True)
    y -= 5 * mm

    for r in rows:
        if y < 12 * mm:
            c.showPage()
            y = h - 15 * mm
            draw_row(COLUMNS, y, bold=True)
            y -= 5 * mm
        draw_row([str(r.get(k, "")) for k in COLUMNS], y)
        y -= 4.5 * mm

    c.showPage()
    c.save()
    return bio.getvalue()
