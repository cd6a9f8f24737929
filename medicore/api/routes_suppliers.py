# FILE: medicore/api/routes_suppliers.py
from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medicore.api.deps import current_actor, get_db
from medicore.core.config import settings
from medicore.models.supplier import Supplier
from medicore.schemas.supplier import SupplierCreate, SupplierOut
from medicore.services import ledger
from medicore.services.replenishment import merge_shipment
from medicore.utils.resp import ok
from medicore.utils.timezone import now_local

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers", tags=["Pharmacy Suppliers"])


@router.get("")
def list_suppliers(db: Session = Depends(get_db)):
    rows = db.query(Supplier).order_by(Supplier.created_at.desc(), Supplier.id.desc()).all()
    return ok([SupplierOut.model_validate(x).model_dump(mode="json") for x in rows])


@router.post("")
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(current_actor),
):
    received = now_local()
    items = []
    total = Decimal("0")
    for line in payload.items:
        price = line.quantity * (line.unit_price or Decimal("0"))
        total += price
        items.append({
            "code": line.code,
            "batch_no": line.batch_no,
            "description": line.description,
            "quantity": str(line.quantity),
            "unit_price": str(line.unit_price) if line.unit_price is not None else None,
            "price": str(price),
            "expiry_date": line.expiry_date.isoformat() if line.expiry_date else None,
            "received_at": received.isoformat(),
        })

    def work() -> Supplier:
        sup = Supplier(
            name=payload.name.strip(),
            contact_person=payload.contact_person or "",
            phone=payload.phone or "",
            email=payload.email or "",
            address=payload.address or "",
            items=items,
            total_price=total,
        )
        db.add(sup)
        db.flush()
        return sup

    sup = ledger.run_unit_of_work(
        db, work, attempts=settings.LEDGER_MAX_RETRIES, what=f"supplier intake {payload.name}")
    supplier_id = sup.id
    logger.info("Supplier intake %s from %s by %s (%s line(s))",
                supplier_id, payload.name, actor, len(items))

    # each line commits on its own; the intake record is already stored
    lines = [
        line if line.supplier_name else line.model_copy(update={"supplier_name": payload.name})
        for line in payload.items
    ]
    summary = merge_shipment(db, lines)

    sup = db.get(Supplier, supplier_id)
    return ok(
        {
            "supplier": SupplierOut.model_validate(sup).model_dump(mode="json"),
            "replenishment": summary.to_out().model_dump(mode="json"),
        },
        status_code=201,
    )
