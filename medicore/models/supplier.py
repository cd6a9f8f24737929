# medicore/models/supplier.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String

from medicore.db.base import Base

Money = Numeric(14, 2)


class Supplier(Base):
    """
    Supplier intake record. ``items`` are the shipment lines that were folded
    into the ledger when the record was created.
    """
    __tablename__ = "pharmacy_suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    contact_person = Column(String(255), default="")
    phone = Column(String(50), default="")
    email = Column(String(255), default="")
    address = Column(String(1000), default="")

    items = Column(JSON, nullable=False, default=list)
    total_price = Column(Money, nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
