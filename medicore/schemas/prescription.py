# medicore/schemas/prescription.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_validator


class PrescriptionItemIn(BaseModel):
    medicine_code: str = Field(min_length=1, max_length=64, alias="medicineCode")
    qty: condecimal(max_digits=14, decimal_places=4, gt=0)
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = Field(default=None, ge=0, alias="durationDays")

    model_config = ConfigDict(populate_by_name=True)


class PrescriptionCreate(BaseModel):
    patient_id: str = Field(min_length=1, max_length=64, alias="patientId")
    doctor_id: str = Field(min_length=1, max_length=64, alias="doctorId")
    items: List[PrescriptionItemIn]

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("items")
    @classmethod
    def _non_empty(cls, v: List[PrescriptionItemIn]) -> List[PrescriptionItemIn]:
        if not v:
            raise ValueError("at least one item is required")
        return v


class PrescriptionItemOut(BaseModel):
    medicine_code: str
    qty: Decimal
    dose: Optional[str] = None
    frequency: Optional[str] = None
    duration_days: Optional[int] = None


class PrescriptionOut(BaseModel):
    id: int
    rx_number: str
    patient_id: str
    doctor_id: str
    items: List[PrescriptionItemOut]
    status: str
    dispensed_at: Optional[datetime] = None
    dispensed_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BatchPickOut(BaseModel):
    batch_no: str
    qty: Decimal


class DispenseOut(BaseModel):
    prescription: PrescriptionOut
    allocations: Dict[str, List[BatchPickOut]]
