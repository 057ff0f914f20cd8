from rentals.schemas.common import (
    CatalogItem, CatalogResponse, DataResponse, MessageResponse, Page, PaginationMeta, Meta
)
from rentals.schemas.payment import (
    Money, PaymentCreate, PaymentUpdate, PaymentResponse,
    PaymentApplicationCreate, PaymentApplicationResult,
    PaymentApplicationItem, PaymentApplicationListResponse,
)
from rentals.schemas.invoice import InvoiceResponse, InvoiceVoidResult

__all__ = [
    "CatalogItem",
    "CatalogResponse",
    "DataResponse",
    "MessageResponse",
    "Page",
    "PaginationMeta",
    "Meta",
    "Money",
    "PaymentCreate",
    "PaymentUpdate",
    "PaymentResponse",
    "PaymentApplicationCreate",
    "PaymentApplicationResult",
    "PaymentApplicationItem",
    "PaymentApplicationListResponse",
    "InvoiceResponse",
    "InvoiceVoidResult",
]
