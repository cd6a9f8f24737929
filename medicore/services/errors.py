# medicore/services/errors.py
from __future__ import annotations

from decimal import Decimal


class PharmacyError(RuntimeError):
    """Base for every error the ledger/dispense services raise on purpose."""

    status_code = 400
    code = "PHARMACY_ERROR"
    retryable = False

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


# -------------------------
# Not found
# -------------------------
class NotFound(PharmacyError):
    status_code = 404
    code = "NOT_FOUND"


class MedicineNotFound(NotFound):
    def __init__(self, code: str):
        super().__init__(f"Medicine {code} not found")
        self.medicine_code = code


class BatchNotFound(NotFound):
    def __init__(self, code: str, batch_no: str):
        super().__init__(f"Batch {batch_no} not found for medicine {code}")
        self.medicine_code = code
        self.batch_no = batch_no


class PrescriptionNotFound(NotFound):
    def __init__(self, ref):
        super().__init__(f"Prescription {ref} not found")


# -------------------------
# Ledger guards
# -------------------------
class InvariantViolation(PharmacyError):
    """A mutation would break a ledger invariant (negative qty, unknown batch)."""

    status_code = 500
    code = "INVARIANT_VIOLATION"


class InsufficientStock(PharmacyError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, medicine_code: str, shortfall: Decimal):
        super().__init__(f"Insufficient stock for {medicine_code}. Short by {shortfall}")
        self.medicine_code = medicine_code
        self.shortfall = shortfall


class AlreadyProcessed(PharmacyError):
    code = "ALREADY_PROCESSED"

    def __init__(self, rx_number: str, status: str):
        super().__init__(f"Prescription {rx_number} already processed ({status})")
        self.rx_number = rx_number
        self.status = status


class ConcurrencyConflict(PharmacyError):
    status_code = 409
    code = "CONCURRENCY_CONFLICT"
    retryable = True
