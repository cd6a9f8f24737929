# FILE: medicore/api/routes_medicines.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medicore.api.deps import current_actor, get_db
from medicore.core.config import settings
from medicore.schemas.medicine import BatchStockIn, BatchUpdate, MedicineUpsert
from medicore.services import alerts, ledger
from medicore.services.replenishment import MergeAction, stock_in
from medicore.utils.resp import ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medicines", tags=["Pharmacy Medicines"])


def _medicine_json(db: Session, code: str) -> dict:
    return alerts.medicine_out(ledger.get_medicine(db, code)).model_dump(mode="json")


# -------------------------
# Medicines
# -------------------------
@router.post("")
def upsert_medicine(
    payload: MedicineUpsert,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def work():
        return ledger.upsert_medicine(
            db,
            payload.code,
            name=payload.name,
            form=payload.form,
            strength=payload.strength,
            reorder_level=payload.reorder_level,
        )

    _med, created = ledger.run_unit_of_work(
        db, work, attempts=settings.LEDGER_MAX_RETRIES, what=f"medicine upsert {payload.code}")
    logger.info("Medicine %s %s by %s", payload.code, "created" if created else "updated", actor)
    return ok(_medicine_json(db, payload.code), status_code=201 if created else 200)


@router.get("")
def list_medicines(
    low_stock: bool = Query(False, alias="lowStock"),
    expiring_in_days: Optional[int] = Query(None, alias="expiringInDays"),
    db: Session = Depends(get_db),
):
    rows = alerts.filter_medicines(
        db, low_stock_only=low_stock, expiring_in_days=expiring_in_days)
    return ok([r.model_dump(mode="json") for r in rows])


@router.get("/{code}")
def get_medicine(code: str, db: Session = Depends(get_db)):
    return ok(_medicine_json(db, code))


# -------------------------
# Batches
# -------------------------
@router.post("/{code}/batches")
def add_batch(
    code: str,
    payload: BatchStockIn,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    outcome = stock_in(db, code, payload)
    data = {
        "medicine": _medicine_json(db, code),
        "outcome": outcome.to_out().model_dump(mode="json"),
        "skipped": outcome.action == MergeAction.SKIPPED,
    }
    if outcome.action == MergeAction.SKIPPED:
        return ok(data)
    logger.info("Stock-in %s/%s qty=%s by %s", code, payload.batch_no, payload.qty, actor)
    return ok(data, status_code=201)


@router.put("/{code}/batches/{batch_no}")
def update_batch(
    code: str,
    batch_no: str,
    payload: BatchUpdate,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    changes = payload.model_dump(exclude_unset=True)

    def work():
        med = ledger.get_medicine(db, code, for_update=True)
        return ledger.update_batch(med, batch_no, changes)

    ledger.run_unit_of_work(
        db, work, attempts=settings.LEDGER_MAX_RETRIES, what=f"batch edit {code}/{batch_no}")
    logger.info("Batch %s/%s edited by %s: %s", code, batch_no, actor, sorted(changes))
    return ok(_medicine_json(db, code))


@router.delete("/{code}/batches/{batch_no}")
def delete_batch(
    code: str,
    batch_no: str,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def work():
        med = ledger.get_medicine(db, code, for_update=True)
        return ledger.remove_batch(med, batch_no)

    removed = ledger.run_unit_of_work(
        db, work, attempts=settings.LEDGER_MAX_RETRIES, what=f"batch removal {code}/{batch_no}")
    logger.warning("Batch %s/%s removed by %s (qty %s)", code, batch_no, actor, removed.qty)
    return ok(_medicine_json(db, code))
