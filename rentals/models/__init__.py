"""
Models package for the rental payments system.
Importing this package registers every table on Base.metadata.
"""
from rentals.models.base import Base
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.payment import Payment, PaymentApplication, PaymentMethod
from rentals.models.audit import AuditLog, AuditAction, AuditResource

__all__ = [
    "Base",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentApplication",
    "PaymentMethod",
    "AuditLog",
    "AuditAction",
    "AuditResource",
]
