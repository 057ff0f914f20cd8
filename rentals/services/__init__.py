"""
Services package - business logic layer
"""
from rentals.services.audit_service import AuditService, AuditContext
from rentals.services.ledger_store import LedgerStore
from rentals.services.payment_application_service import PaymentApplicationService
from rentals.services.payment_service import PaymentService
from rentals.services.invoice_service import InvoiceService

__all__ = [
    "AuditService",
    "AuditContext",
    "LedgerStore",
    "PaymentApplicationService",
    "PaymentService",
    "InvoiceService",
]
