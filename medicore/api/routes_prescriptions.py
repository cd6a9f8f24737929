# FILE: medicore/api/routes_prescriptions.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medicore.api.deps import current_actor, get_db
from medicore.core.config import settings
from medicore.models.prescription import Prescription, PrescriptionStatus
from medicore.schemas.prescription import (
    BatchPickOut,
    DispenseOut,
    PrescriptionCreate,
    PrescriptionOut,
)
from medicore.services import ledger
from medicore.services.dispense import dispense_prescription, get_prescription
from medicore.services.rx_numbers import next_rx_number
from medicore.utils.resp import ok
from medicore.utils.timezone import today_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prescriptions", tags=["Pharmacy Prescriptions"])


@router.post("")
def create_prescription(
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    def work() -> Prescription:
        rx_number = next_rx_number(db, today_local())
        rx = Prescription(
            rx_number=rx_number,
            patient_id=payload.patient_id,
            doctor_id=payload.doctor_id,
            items=[i.model_dump(mode="json") for i in payload.items],
            status=PrescriptionStatus.PENDING.value,
        )
        db.add(rx)
        db.flush()
        return rx

    rx = ledger.run_unit_of_work(
        db, work, attempts=settings.LEDGER_MAX_RETRIES, what="prescription create")
    logger.info("Prescription %s created by %s (%s item(s))", rx.rx_number, actor, len(payload.items))
    return ok(PrescriptionOut.model_validate(rx).model_dump(mode="json"), status_code=201)


@router.get("/{ref}")
def read_prescription(ref: str, db: Session = Depends(get_db)):
    rx = get_prescription(db, ref)
    return ok(PrescriptionOut.model_validate(rx).model_dump(mode="json"))


@router.post("/{ref}/dispense")
def dispense(
    ref: str,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    result = dispense_prescription(db, ref, actor=actor)
    out = DispenseOut(
        prescription=PrescriptionOut.model_validate(result.prescription),
        allocations={
            code: [BatchPickOut(batch_no=p.batch_no, qty=p.qty) for p in picks]
            for code, picks in result.allocations.items()
        },
    )
    return ok(out.model_dump(mode="json"))
