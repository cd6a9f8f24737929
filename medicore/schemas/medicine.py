# medicore/schemas/medicine.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_validator

from medicore.models.medicine import MedicineForm

Quantity = condecimal(max_digits=14, decimal_places=4, ge=0)
Money = condecimal(max_digits=14, decimal_places=4, ge=0)


# ---------- Embedded batch (ledger document) ----------


class BatchEntry(BaseModel):
    """One batch as stored inside ``Medicine.batches``."""

    batch_no: str = Field(min_length=1, max_length=100)
    qty: Decimal = Field(ge=0)
    unit: str = "units"
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    expiry_date: date
    received_at: Optional[datetime] = None
    supplier_name: Optional[str] = None


# ---------- Medicines ----------


class MedicineUpsert(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)
    form: Optional[MedicineForm] = None
    strength: Optional[str] = None
    reorder_level: Optional[Quantity] = Field(default=None, alias="reorderLevel")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("code")
    @classmethod
    def _strip_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code is required")
        return v


class MedicineOut(BaseModel):
    id: int
    code: str
    name: str
    form: str
    strength: Optional[str] = ""
    reorder_level: Decimal
    total_quantity: Decimal
    low_stock: bool
    batches: List[BatchEntry]
    created_at: datetime
    updated_at: datetime


# ---------- Batches (HTTP) ----------


class BatchStockIn(BaseModel):
    batch_no: str = Field(min_length=1, max_length=100, alias="batchNo")
    qty: condecimal(max_digits=14, decimal_places=4, gt=0)
    unit: Optional[str] = "units"
    expiry_date: Optional[date] = Field(default=None, alias="expiryDate")
    unit_price: Optional[Money] = Field(default=None, alias="unitPrice")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")

    model_config = ConfigDict(populate_by_name=True)


class BatchUpdate(BaseModel):
    batch_no: Optional[str] = Field(default=None, min_length=1, max_length=100, alias="batchNo")
    qty: Optional[Quantity] = None
    unit: Optional[str] = None
    expiry_date: Optional[date] = Field(default=None, alias="expiryDate")
    unit_price: Optional[Money] = Field(default=None, alias="unitPrice")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")

    model_config = ConfigDict(populate_by_name=True)
