# FILE: medicore/api/routes_reports.py
from __future__ import annotations

from io import BytesIO

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from medicore.api.deps import get_db
from medicore.core.config import settings
from medicore.services import alerts
from medicore.services.alerts_export import export_pdf, export_xlsx, report_rows
from medicore.utils.resp import ok

router = APIRouter(prefix="/reports", tags=["Pharmacy Reports"])


@router.get("/alerts")
def get_alerts(
    expiring_in_days: int = Query(settings.DEFAULT_EXPIRY_WINDOW_DAYS, alias="expiringInDays"),
    db: Session = Depends(get_db),
):
    report = alerts.alerts_report(db, expiring_in_days)
    return ok(report.model_dump(mode="json"))


@router.get("/alerts/export")
def export_alerts(
    format: str = Query("xlsx", pattern="^(xlsx|pdf)$"),
    expiring_in_days: int = Query(settings.DEFAULT_EXPIRY_WINDOW_DAYS, alias="expiringInDays"),
    db: Session = Depends(get_db),
):
    report = alerts.alerts_report(db, expiring_in_days)
    rows = report_rows(report)
    filename_base = f"pharmacy_alerts_{report.as_of.strftime('%Y%m%d')}"

    if format == "pdf":
        title = f"Pharmacy Stock Alerts ({report.as_of.isoformat()}, {expiring_in_days} days)"
        return StreamingResponse(
            BytesIO(export_pdf(rows, title=title)),
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename_base}.pdf"'},
        )

    return StreamingResponse(
        BytesIO(export_xlsx(rows)),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'},
    )
