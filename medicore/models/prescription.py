# medicore/models/prescription.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from medicore.db.base import Base


class PrescriptionStatus(str, enum.Enum):
    PENDING = "PENDING"
    DISPENSED = "DISPENSED"


class Prescription(Base):
    """
    Prescription with embedded line items ``[{medicine_code, qty, ...}]``.
    PENDING -> DISPENSED happens once, only through services.dispense.
    """
    __tablename__ = "pharmacy_prescriptions"
    __table_args__ = (
        Index("ix_pharmacy_rx_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    rx_number = Column(String(40), unique=True, nullable=False, index=True)

    patient_id = Column(String(64), nullable=False, index=True)
    doctor_id = Column(String(64), nullable=False)

    items = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default=PrescriptionStatus.PENDING.value)
    dispensed_at = Column(DateTime, nullable=True)
    dispensed_by = Column(String(100), nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}
