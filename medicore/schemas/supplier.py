# medicore/schemas/supplier.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal

Quantity = condecimal(max_digits=14, decimal_places=4, gt=0)
Money = condecimal(max_digits=14, decimal_places=4, ge=0)


class ShipmentLine(BaseModel):
    """One supplier shipment line as consumed by the replenishment merger."""

    code: str = Field(min_length=1, max_length=64)
    batch_no: str = Field(min_length=1, max_length=100, alias="batchNo")
    quantity: Quantity
    unit_price: Optional[Money] = Field(default=None, alias="unitPrice")
    expiry_date: Optional[date] = Field(default=None, alias="expiryDate")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")
    description: Optional[str] = None
    unit: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    contact_person: Optional[str] = Field(default="", alias="contactPerson")
    phone: Optional[str] = ""
    email: Optional[str] = ""
    address: Optional[str] = ""
    items: List[ShipmentLine] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SupplierItemOut(BaseModel):
    code: str
    batch_no: str
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Optional[Decimal] = None
    price: Decimal
    expiry_date: Optional[date] = None
    received_at: Optional[datetime] = None


class SupplierOut(BaseModel):
    id: int
    name: str
    contact_person: Optional[str] = ""
    phone: Optional[str] = ""
    email: Optional[str] = ""
    address: Optional[str] = ""
    items: List[SupplierItemOut]
    total_price: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MergeOutcomeOut(BaseModel):
    code: str
    batch_no: str
    action: str
    qty: Decimal
    reason: Optional[str] = None
    medicine_created: bool = False


class ReplenishmentSummaryOut(BaseModel):
    created: int
    updated: int
    skipped: int
    failed: int
    lines: List[MergeOutcomeOut]
