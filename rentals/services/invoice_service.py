"""
Invoice service: consulta y anulación de facturas.
"""
from typing import Optional, Tuple, List

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.database import atomic
from rentals.models.audit import AuditAction, AuditResource
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.schemas.invoice import InvoiceResponse, InvoiceVoidResult
from rentals.services.audit_service import AuditService, AuditContext
from rentals.services.ledger_store import LedgerStore
from rentals.utils.exceptions import NotFoundError, ConflictError, InternalError
from rentals.utils.logging import get_logger
from rentals.utils.money import ZERO, parse_positive_id

logger = get_logger(__name__)


class InvoiceService:
    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.store = LedgerStore(db)
        self.audit = audit or AuditService(db)

    async def get_invoice(self, factura_id: int) -> InvoiceResponse:
        """Obtener una factura por ID"""
        factura_id = parse_positive_id(factura_id, "factura_id")
        result = await self.db.execute(select(Invoice).where(Invoice.id == factura_id))
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Factura", factura_id)
        return InvoiceResponse.model_validate(invoice)

    async def list_invoices(
        self,
        page: int = 1,
        limit: int = 20,
        estado: Optional[InvoiceStatus] = None,
        contrato_id: Optional[int] = None
    ) -> Tuple[List[InvoiceResponse], int]:
        conditions = []
        if estado is not None:
            conditions.append(Invoice.estado == estado)
        if contrato_id is not None:
            conditions.append(Invoice.contrato_id == contrato_id)

        total = (await self.db.execute(
            select(func.count(Invoice.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Invoice)
            .where(*conditions)
            .order_by(Invoice.fecha_emision.desc(), Invoice.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        invoices = [InvoiceResponse.model_validate(i) for i in result.scalars().all()]
        return invoices, total

    async def void_invoice(self, factura_id: int, context: Optional[AuditContext] = None) -> InvoiceVoidResult:
        """
        Anular una factura.

        Una factura anulada queda con saldo cero y no admite nuevas
        aplicaciones. Las facturas pagadas no se pueden anular.
        """
        factura_id = parse_positive_id(factura_id, "factura_id")
        try:
            async with atomic(self.db):
                invoice = await self.store.lock_invoice(factura_id)
                if invoice is None:
                    raise NotFoundError("Factura", factura_id)

                if invoice.estado == InvoiceStatus.ANULADA:
                    raise ConflictError("La factura ya se encuentra anulada", rule="already voided", resource="factura")
                if invoice.estado == InvoiceStatus.PAGADA:
                    raise ConflictError("No es posible anular una factura pagada", rule="paid invoice", resource="factura")

                estado_anterior = invoice.estado
                await self.store.set_invoice_balance(invoice, ZERO, InvoiceStatus.ANULADA)
        except SQLAlchemyError as e:
            logger.error(f"Error al anular factura {factura_id}: {e}", exc_info=True)
            raise InternalError("No se pudo anular la factura", {"factura_id": factura_id}) from e

        await self.audit.record(
            AuditAction.UPDATE,
            AuditResource.INVOICE,
            factura_id,
            {"estado_anterior": estado_anterior.value},
            context
        )
        logger.info(f"Factura anulada: {factura_id} (estado anterior {estado_anterior.value})")
        return InvoiceVoidResult(id=factura_id, estado=InvoiceStatus.ANULADA, estado_anterior=estado_anterior)
