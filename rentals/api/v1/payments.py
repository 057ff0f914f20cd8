"""
Payment API endpoints: registro de pagos y aplicación/reversión contra facturas.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.api.deps import CurrentUser, audit_context, get_db, require_admin, require_operator
from rentals.config import settings
from rentals.models.payment import PAYMENT_METHOD_LABELS
from rentals.schemas.common import (
    CatalogItem, CatalogResponse, DataResponse, MessageResponse, Meta, Page, PaginationMeta
)
from rentals.schemas.payment import (
    PaymentCreate, PaymentUpdate, PaymentResponse,
    PaymentApplicationCreate, PaymentApplicationResult, PaymentApplicationListResponse
)
from rentals.services.payment_application_service import PaymentApplicationService
from rentals.services.payment_service import PaymentService
from rentals.utils.logging import get_logger
from rentals.utils.money import MAX_ID

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=DataResponse[PaymentResponse],
    status_code=http_status.HTTP_201_CREATED
)
async def create_payment(
    payment_data: PaymentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """Registrar un pago; su saldo no aplicado inicia igual al monto"""
    service = PaymentService(db)
    payment = await service.create_payment(
        payment_data,
        created_by_id=current_user.id,
        context=audit_context(request, current_user)
    )
    return DataResponse(message="Pago registrado exitosamente", data=payment)


@router.get("", response_model=Page[PaymentResponse])
async def list_payments(
    page: int = Query(1, ge=1, description="Página (basada en 1)"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    contrato_id: Optional[int] = Query(None, gt=0, le=MAX_ID, description="Filtrar por contrato"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """Listar pagos vigentes"""
    service = PaymentService(db)
    payments, total = await service.list_payments(page=page, limit=limit, contrato_id=contrato_id)
    return Page[PaymentResponse](
        data=payments,
        meta=Meta(pagination=PaginationMeta.build(page, limit, total))
    )


@router.get("/catalogo/formas-pago", response_model=CatalogResponse)
async def list_payment_methods(current_user: CurrentUser = Depends(require_operator)):
    """Catálogo de formas de pago, ordenado por nombre"""
    items = [CatalogItem(codigo=method.value, nombre=nombre) for method, nombre in PAYMENT_METHOD_LABELS.items()]
    return CatalogResponse(data=sorted(items, key=lambda item: item.nombre))


@router.get("/{pago_id}", response_model=DataResponse[PaymentResponse])
async def get_payment(
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """Obtener un pago por ID"""
    service = PaymentService(db)
    payment = await service.get_payment(pago_id, context=audit_context(request, current_user))
    return DataResponse(data=payment)


@router.patch("/{pago_id}", response_model=DataResponse[PaymentResponse])
async def update_payment(
    payment_data: PaymentUpdate,
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """
    Actualizar forma de pago, fecha, referencia, notas o monto de un pago.

    Cambiar el monto de un pago con aplicaciones responde 409.
    """
    service = PaymentService(db)
    changed, payment = await service.update_payment(
        pago_id, payment_data, context=audit_context(request, current_user)
    )
    return DataResponse(message="Pago actualizado" if changed else "Sin cambios", data=payment)


@router.delete("/{pago_id}", response_model=MessageResponse)
async def delete_payment(
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Eliminar un pago sin aplicaciones (soft delete)"""
    service = PaymentService(db)
    await service.delete_payment(pago_id, context=audit_context(request, current_user))
    return MessageResponse(message="Pago eliminado")


# =============================================
# APLICACIONES DE PAGO
# =============================================

@router.post(
    "/{pago_id}/aplicar",
    response_model=DataResponse[PaymentApplicationResult],
    status_code=http_status.HTTP_201_CREATED
)
async def apply_payment(
    application_data: PaymentApplicationCreate,
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """
    Aplicar parte del saldo no aplicado de un pago a una factura.

    Rechaza con 409 si la factura está anulada o si el monto excede el saldo
    no aplicado del pago o el saldo pendiente de la factura.
    """
    logger.info(
        f"[API_APPLY_PAYMENT] Usuario {current_user.id} aplica pago {pago_id} a factura "
        f"{application_data.factura_id} por {application_data.monto_aplicado}"
    )
    service = PaymentApplicationService(db)
    result = await service.apply_payment(
        pago_id,
        application_data.factura_id,
        application_data.monto_aplicado,
        context=audit_context(request, current_user)
    )
    return DataResponse(message="Pago aplicado exitosamente", data=result)


@router.get("/{pago_id}/aplicaciones", response_model=PaymentApplicationListResponse)
async def list_payment_applications(
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """Aplicaciones del pago, más recientes primero"""
    service = PaymentApplicationService(db)
    items = await service.list_applications(pago_id, context=audit_context(request, current_user))
    return PaymentApplicationListResponse(data=items)


@router.delete("/{pago_id}/aplicaciones/{aplicacion_id}", response_model=MessageResponse)
async def reverse_payment_application(
    request: Request,
    pago_id: int = Path(..., gt=0, le=MAX_ID),
    aplicacion_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_operator)
):
    """Revertir una aplicación restaurando los saldos de pago y factura"""
    logger.info(f"[API_REVERSE_APPLICATION] Usuario {current_user.id} revierte aplicación {aplicacion_id} del pago {pago_id}")
    service = PaymentApplicationService(db)
    await service.reverse_application(pago_id, aplicacion_id, context=audit_context(request, current_user))
    return MessageResponse(message="Aplicación revertida")
