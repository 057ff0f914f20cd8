"""
Invoice API endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.api.deps import CurrentUser, audit_context, get_db, require_admin, require_operator
from rentals.config import settings
from rentals.models.invoice import INVOICE_STATUS_LABELS, InvoiceStatus
from rentals.schemas.common import CatalogItem, CatalogResponse, DataResponse, Meta, Page, PaginationMeta
from rentals.schemas.invoice import InvoiceResponse, InvoiceVoidResult
from rentals.services.invoice_service import InvoiceService
from rentals.utils.money import MAX_ID

router = APIRouter()


@router.get("", response_model=Page[InvoiceResponse])
async def list_invoices(
    page: int = Query(1, ge=1, description="Página (basada en 1)"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    estado: Optional[InvoiceStatus] = Query(None, description="Filtrar por estado"),
    contrato_id: Optional[int] = Query(None, gt=0, le=MAX_ID, description="Filtrar por contrato"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    service = InvoiceService(db)
    invoices, total = await service.list_invoices(page=page, limit=limit, estado=estado, contrato_id=contrato_id)
    return Page[InvoiceResponse](
        data=invoices,
        meta=Meta(pagination=PaginationMeta.build(page, limit, total))
    )


@router.get("/catalogo/estados", response_model=CatalogResponse)
async def list_invoice_statuses(current_user: CurrentUser = Depends(require_operator)):
    return CatalogResponse(
        data=[CatalogItem(codigo=estado.value, nombre=nombre) for estado, nombre in INVOICE_STATUS_LABELS.items()]
    )


@router.get("/{factura_id}", response_model=DataResponse[InvoiceResponse])
async def get_invoice(
    factura_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    service = InvoiceService(db)
    invoice = await service.get_invoice(factura_id)
    return DataResponse(data=invoice)


@router.patch("/{factura_id}/anular", response_model=DataResponse[InvoiceVoidResult])
async def void_invoice(
    request: Request,
    factura_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """
    Anular una factura.

    La factura queda con saldo pendiente cero y deja de aceptar aplicaciones.
    Las aplicaciones ya registradas se conservan y pueden revertirse.
    """
    service = InvoiceService(db)
    result = await service.void_invoice(factura_id, context=audit_context(request, current_user))
    return DataResponse(message="Factura anulada exitosamente", data=result)
