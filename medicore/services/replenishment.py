# medicore/services/replenishment.py
"""
Replenishment merger: folds supplier shipment lines (or a direct stock-in)
into the batch ledger.

Each line is its own unit of work. A skipped or failed line never rolls back
the lines merged before it.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medicore.core.config import settings
from medicore.schemas.medicine import BatchStockIn
from medicore.schemas.supplier import (
    MergeOutcomeOut,
    ReplenishmentSummaryOut,
    ShipmentLine,
)
from medicore.services import ledger
from medicore.services.errors import MedicineNotFound, PharmacyError
from medicore.utils.timezone import today_local

logger = logging.getLogger(__name__)


class MergeAction(str, enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class MergeOutcome:
    code: str
    batch_no: str
    action: MergeAction
    qty: Decimal
    reason: Optional[str] = None
    medicine_created: bool = False

    def to_out(self) -> MergeOutcomeOut:
        return MergeOutcomeOut(
            code=self.code,
            batch_no=self.batch_no,
            action=self.action.value,
            qty=self.qty,
            reason=self.reason,
            medicine_created=self.medicine_created,
        )


@dataclass
class ReplenishmentSummary:
    outcomes: List[MergeOutcome] = field(default_factory=list)

    def _count(self, action: MergeAction) -> int:
        return sum(1 for o in self.outcomes if o.action == action)

    @property
    def created(self) -> int:
        return self._count(MergeAction.CREATED)

    @property
    def updated(self) -> int:
        return self._count(MergeAction.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(MergeAction.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(MergeAction.FAILED)

    def to_out(self) -> ReplenishmentSummaryOut:
        return ReplenishmentSummaryOut(
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            failed=self.failed,
            lines=[o.to_out() for o in self.outcomes],
        )


def skip_reason(line: ShipmentLine, today: date) -> Optional[str]:
    """Why a line is unusable at intake, or None when it can be merged."""
    if line.expiry_date is None:
        return "missing expiry date"
    if line.expiry_date <= today:
        return f"expired on {line.expiry_date.isoformat()}"
    return None


def merge_line(
    db: Session,
    line: ShipmentLine,
    *,
    today: Optional[date] = None,
    create_missing: bool = True,
    attempts: Optional[int] = None,
) -> MergeOutcome:
    """
    Fold one shipment line into its medicine's batches and commit.

    - unknown code -> medicine created (name from description, else code)
      unless ``create_missing`` is False
    - missing / past expiry -> SKIPPED, nothing written
    - existing batch_no -> qty added, price/expiry/supplier overwritten
    - new batch_no -> appended
    """
    today = today or today_local()

    reason = skip_reason(line, today)
    if reason:
        logger.warning("Replenishment line skipped code=%s batch=%s qty=%s: %s",
                       line.code, line.batch_no, line.quantity, reason)
        return MergeOutcome(line.code, line.batch_no, MergeAction.SKIPPED, line.quantity, reason)

    def work() -> MergeOutcome:
        med = ledger.find_medicine(db, line.code, for_update=True)
        medicine_created = False
        if med is None:
            if not create_missing:
                raise MedicineNotFound(line.code)
            med, medicine_created = ledger.upsert_medicine(
                db, line.code, name=(line.description or "").strip() or line.code)

        _batch, created = ledger.upsert_batch(
            med,
            line.batch_no,
            qty_delta=line.quantity,
            unit=line.unit,
            unit_price=line.unit_price,
            expiry_date=line.expiry_date,
            supplier_name=line.supplier_name,
        )
        action = MergeAction.CREATED if created else MergeAction.UPDATED
        return MergeOutcome(line.code, line.batch_no, action, line.quantity,
                            medicine_created=medicine_created)

    outcome = ledger.run_unit_of_work(
        db,
        work,
        attempts=attempts or settings.LEDGER_MAX_RETRIES,
        what=f"replenishment {line.code}/{line.batch_no}",
    )
    logger.info("Replenishment %s code=%s batch=%s qty=+%s",
                outcome.action.value, line.code, line.batch_no, line.quantity)
    return outcome


def merge_shipment(
    db: Session,
    lines: Iterable[ShipmentLine],
    *,
    today: Optional[date] = None,
) -> ReplenishmentSummary:
    """Merge every line independently; failures are recorded, not raised."""
    today = today or today_local()
    summary = ReplenishmentSummary()

    for line in lines:
        try:
            summary.outcomes.append(merge_line(db, line, today=today))
        except (PharmacyError, ValueError, SQLAlchemyError) as e:
            msg = getattr(e, "msg", None) or str(e)
            logger.warning("Replenishment line failed code=%s batch=%s: %s",
                           line.code, line.batch_no, msg)
            summary.outcomes.append(
                MergeOutcome(line.code, line.batch_no, MergeAction.FAILED, line.quantity, msg))

    if summary.skipped:
        logger.warning("Replenishment finished with %s skipped line(s)", summary.skipped)
    return summary


def stock_in(
    db: Session,
    code: str,
    payload: BatchStockIn,
    *,
    today: Optional[date] = None,
) -> MergeOutcome:
    """Direct stock-in of one batch onto an existing medicine."""
    line = ShipmentLine(
        code=code,
        batch_no=payload.batch_no,
        quantity=payload.qty,
        unit_price=payload.unit_price,
        expiry_date=payload.expiry_date,
        supplier_name=payload.supplier_name,
        unit=payload.unit,
    )
    # 404 must win over the expiry skip
    ledger.get_medicine(db, code)
    return merge_line(db, line, today=today, create_missing=False)
