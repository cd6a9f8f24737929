# medicore/services/alerts.py
"""
Read-only stock alerts over the batch ledger.

- low stock:   total quantity <= reorder level
- near expiry: batches with qty > 0 expiring on or before today + window.
  Already-expired stock is included on purpose (wastage visibility), unlike
  FEFO allocation which never touches it.

Results are ordered by medicine code so one snapshot always yields the same
report.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from medicore.models.medicine import Medicine
from medicore.schemas.alerts import AlertsReportOut, LowStockOut, NearExpiryOut
from medicore.schemas.medicine import BatchEntry, MedicineOut
from medicore.services import ledger
from medicore.utils.timezone import now_local, today_local


def _all_medicines(db: Session) -> List[Medicine]:
    return db.query(Medicine).order_by(Medicine.code.asc()).all()


def _window_cutoff(window_days: int, today: date) -> date:
    if window_days is None or int(window_days) < 0:
        raise ValueError("expiringInDays must be >= 0")
    return today + timedelta(days=int(window_days))


def is_low_stock(total: Decimal, reorder_level: Optional[Decimal]) -> bool:
    return total <= ledger.D(reorder_level)


def near_expiry_batches(batches: Iterable[BatchEntry], cutoff: date) -> List[BatchEntry]:
    return [b for b in batches if b.qty > 0 and b.expiry_date <= cutoff]


def medicine_out(med: Medicine) -> MedicineOut:
    batches = ledger.read_batches(med)
    total = ledger.total_quantity(batches)
    return MedicineOut(
        id=med.id,
        code=med.code,
        name=med.name,
        form=med.form,
        strength=med.strength or "",
        reorder_level=ledger.D(med.reorder_level),
        total_quantity=total,
        low_stock=is_low_stock(total, med.reorder_level),
        batches=batches,
        created_at=med.created_at,
        updated_at=med.updated_at,
    )


def low_stock(db: Session) -> List[LowStockOut]:
    rows: List[LowStockOut] = []
    for med in _all_medicines(db):
        total = ledger.total_quantity(med)
        if is_low_stock(total, med.reorder_level):
            rows.append(LowStockOut(
                code=med.code,
                name=med.name,
                total_quantity=total,
                reorder_level=ledger.D(med.reorder_level),
            ))
    return rows


def near_expiry(db: Session, window_days: int, *, today: Optional[date] = None) -> List[NearExpiryOut]:
    cutoff = _window_cutoff(window_days, today or today_local())
    rows: List[NearExpiryOut] = []
    for med in _all_medicines(db):
        batches = near_expiry_batches(ledger.read_batches(med), cutoff)
        if batches:
            rows.append(NearExpiryOut(code=med.code, name=med.name, batches=batches))
    return rows


def alerts_report(db: Session, window_days: int, *, today: Optional[date] = None) -> AlertsReportOut:
    today = today or today_local()
    return AlertsReportOut(
        low_stock=low_stock(db),
        near_expiry=near_expiry(db, window_days, today=today),
        expiring_in_days=int(window_days),
        as_of=today,
        generated_at=now_local(),
    )


def filter_medicines(
    db: Session,
    *,
    low_stock_only: bool = False,
    expiring_in_days: Optional[int] = None,
    today: Optional[date] = None,
) -> List[MedicineOut]:
    """List view: every medicine, optionally only low-stock and/or near-expiry ones."""
    cutoff = None
    if expiring_in_days is not None:
        cutoff = _window_cutoff(expiring_in_days, today or today_local())

    out: List[MedicineOut] = []
    for med in _all_medicines(db):
        row = medicine_out(med)
        if low_stock_only and not row.low_stock:
            continue
        if cutoff is not None and not near_expiry_batches(row.batches, cutoff):
            continue
        out.append(row)
    return out
