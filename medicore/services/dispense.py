# medicore/services/dispense.py
"""
Prescription dispensing.

Two phases per attempt, one DB transaction:

1. plan   - lock the prescription and every referenced medicine, run FEFO for
            each requirement. Any shortfall aborts before anything is written.
2. commit - stage all batch deductions plus PENDING -> DISPENSED, commit once.

A commit that loses a race (stale version, deadlock, dropped connection) is
rolled back and the whole attempt re-runs from fresh state; a stale plan is
never reused. When attempts run out the prescription stays PENDING.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Union

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from medicore.core.config import settings
from medicore.models.medicine import Medicine
from medicore.models.prescription import Prescription, PrescriptionStatus
from medicore.services import ledger
from medicore.services.errors import (
    AlreadyProcessed,
    ConcurrencyConflict,
    InsufficientStock,
    PrescriptionNotFound,
)
from medicore.services.fefo import Allocation, BatchPick, Insufficient, allocate_fefo
from medicore.utils.timezone import now_local, today_local

logger = logging.getLogger(__name__)


@dataclass
class MedicinePlan:
    medicine: Medicine
    allocation: Allocation


@dataclass
class DispenseResult:
    prescription: Prescription
    allocations: Dict[str, List[BatchPick]] = field(default_factory=dict)
    attempts: int = 1


def get_prescription(db: Session, ref: Union[int, str], *, for_update: bool = False) -> Prescription:
    """Look up by internal id first, then by rx_number (which may be all digits)."""
    def lookup(criterion) -> Optional[Prescription]:
        q = db.query(Prescription).filter(criterion)
        if for_update:
            q = q.with_for_update()
        return q.first()

    rx = None
    if isinstance(ref, int) or str(ref).isdigit():
        rx = lookup(Prescription.id == int(ref))
    if rx is None and not isinstance(ref, int):
        rx = lookup(Prescription.rx_number == str(ref))
    if not rx:
        raise PrescriptionNotFound(ref)
    return rx


def requirements(rx: Prescription) -> "OrderedDict[str, Decimal]":
    """Required qty per medicine code, in first-seen order (repeated codes summed)."""
    need: "OrderedDict[str, Decimal]" = OrderedDict()
    for item in rx.items or []:
        code = str(item.get("medicine_code") or "").strip()
        qty = ledger.D(item.get("qty"))
        if not code:
            raise ValueError(f"Prescription {rx.rx_number} has an item without medicine code")
        if qty <= 0:
            raise ValueError(f"Prescription {rx.rx_number} item {code} must have qty > 0")
        need[code] = need.get(code, Decimal("0")) + qty
    if not need:
        raise ValueError(f"Prescription {rx.rx_number} has no items")
    return need


def plan_dispense(db: Session, rx: Prescription, *, today: date) -> List[MedicinePlan]:
    """
    Phase 1: decide every allocation without writing anything.
    Raises MedicineNotFound / InsufficientStock for the first offending item.
    """
    need = requirements(rx)

    # lock in code order so two prescriptions sharing medicines cannot deadlock
    locked: Dict[str, Medicine] = {
        code: ledger.get_medicine(db, code, for_update=True) for code in sorted(need)
    }

    plans: List[MedicinePlan] = []
    for code, qty in need.items():
        med = locked[code]
        result = allocate_fefo(ledger.read_batches(med), qty, today=today)
        if isinstance(result, Insufficient):
            raise InsufficientStock(code, result.shortfall)
        plans.append(MedicinePlan(medicine=med, allocation=result))
    return plans


def commit_dispense(
    db: Session,
    rx: Prescription,
    plans: List[MedicinePlan],
    *,
    actor: Optional[str],
) -> None:
    """Phase 2: stage every deduction and the status flip, then commit once."""
    for plan in plans:
        ledger.apply_batch_deltas(plan.medicine, plan.allocation.as_deltas())

    rx.status = PrescriptionStatus.DISPENSED.value
    rx.dispensed_at = now_local()
    rx.dispensed_by = actor

    ledger.commit_or_conflict(db, what=f"dispense of {rx.rx_number}")


def dispense_prescription(
    db: Session,
    ref: Union[int, str],
    *,
    actor: Optional[str] = None,
    today: Optional[date] = None,
    max_attempts: Optional[int] = None,
) -> DispenseResult:
    attempts = max(1, int(max_attempts or settings.DISPENSE_MAX_RETRIES))
    last_conflict: Optional[ConcurrencyConflict] = None

    for attempt in range(1, attempts + 1):
        try:
            try:
                rx = get_prescription(db, ref, for_update=True)
                if rx.status != PrescriptionStatus.PENDING.value:
                    raise AlreadyProcessed(rx.rx_number, rx.status)

                plans = plan_dispense(db, rx, today=today or today_local())
            except OperationalError as e:
                # deadlock / lock-wait timeout on the locked reads
                raise ledger.store_conflict(e, f"dispense of {ref}") from e

            commit_dispense(db, rx, plans, actor=actor)

        except ConcurrencyConflict as e:
            db.rollback()
            last_conflict = e
            logger.warning("Dispense %s conflicted (attempt %s/%s): %s",
                           ref, attempt, attempts, e.msg)
            continue

        except (AlreadyProcessed, InsufficientStock) as e:
            db.rollback()
            logger.warning("Dispense %s rejected: %s", ref, e.msg)
            raise

        except Exception:
            db.rollback()
            raise

        allocations = {p.medicine.code: list(p.allocation.picks) for p in plans}
        logger.info(
            "Dispensed %s by %s: %s",
            rx.rx_number,
            actor or "-",
            "; ".join(
                f"{code} " + ", ".join(f"{p.batch_no}x{p.qty}" for p in picks)
                for code, picks in allocations.items()
            ),
        )
        return DispenseResult(prescription=rx, allocations=allocations, attempts=attempt)

    raise ConcurrencyConflict(
        f"Dispense of prescription {ref} abandoned after {attempts} attempt(s); "
        f"prescription left PENDING. {last_conflict.msg if last_conflict else ''}".strip())
