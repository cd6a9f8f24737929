# medicore/models/__init__.py
from .medicine import Medicine, MedicineForm
from .prescription import Prescription, PrescriptionStatus
from .supplier import Supplier
from .rx_counter import RxCounter

__all__ = [
    "Medicine",
    "MedicineForm",
    "Prescription",
    "PrescriptionStatus",
    "Supplier",
    "RxCounter",
]
