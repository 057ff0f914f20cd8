"""
API v1 router configuration.
"""
from fastapi import APIRouter

from rentals.api.v1 import payments, invoices

api_router = APIRouter()

# Payment routes - registro, aplicación y reversión
api_router.include_router(payments.router, prefix="/pagos", tags=["pagos"])

# Invoice routes - consulta y anulación
api_router.include_router(invoices.router, prefix="/facturas", tags=["facturas"])
