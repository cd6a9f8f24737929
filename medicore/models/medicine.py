# medicore/models/medicine.py
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String

from medicore.db.base import Base

Qty = Numeric(14, 4)


class MedicineForm(str, enum.Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    SYRUP = "syrup"
    INJECTION = "injection"
    CREAM = "cream"
    OTHER = "other"


class Medicine(Base):
    """
    One ledger record per medicine code.

    Batches are embedded as a JSON list (see schemas.medicine.BatchEntry);
    list order is insertion order and is what FEFO uses to break expiry ties.
    ``version`` is bumped on every UPDATE so a stale read-modify-write fails
    instead of overwriting another writer's quantities.
    """
    __tablename__ = "pharmacy_medicines"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    form = Column(String(20), nullable=False, default=MedicineForm.OTHER.value)
    strength = Column(String(100), default="")
    reorder_level = Column(Qty, nullable=False, default=Decimal("0"))

    batches = Column(JSON, nullable=False, default=list)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Medicine {self.code} v{self.version}>"
