# medicore/schemas/alerts.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from medicore.schemas.medicine import BatchEntry


class LowStockOut(BaseModel):
    code: str
    name: str
    total_quantity: Decimal
    reorder_level: Decimal


class NearExpiryOut(BaseModel):
    code: str
    name: str
    batches: List[BatchEntry]


class AlertsReportOut(BaseModel):
    low_stock: List[LowStockOut]
    near_expiry: List[NearExpiryOut]
    expiring_in_days: int
    as_of: date
    generated_at: datetime
