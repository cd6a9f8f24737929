# FILE: medicore/api/router.py
from fastapi import APIRouter

from medicore.api import (
    routes_medicines,
    routes_prescriptions,
    routes_reports,
    routes_suppliers,
)

api_router = APIRouter()

api_router.include_router(routes_medicines.router)
api_router.include_router(routes_reports.router)
api_router.include_router(routes_prescriptions.router)
api_router.include_router(routes_suppliers.router)
