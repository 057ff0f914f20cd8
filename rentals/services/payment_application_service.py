"""
Payment application service: aplica el saldo de un pago a facturas y revierte
aplicaciones.

Cada operación es una única unidad de trabajo sobre la sesión recibida:
- aplicar: lock Pago -> lock Factura -> validar -> insertar aplicación ->
  actualizar saldos -> commit
- revertir: lock Aplicación -> lock Pago -> lock Factura -> restaurar saldos ->
  eliminar aplicación -> commit

El orden de locks es fijo para que aplicaciones y reversiones concurrentes
sobre el mismo par no formen ciclos. La auditoría se escribe solo después del
commit.
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.database import atomic
from rentals.models.audit import AuditAction, AuditResource
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.schemas.payment import PaymentApplicationResult, PaymentApplicationItem
from rentals.services.audit_service import AuditService, AuditContext
from rentals.services.ledger_store import LedgerStore
from rentals.utils.exceptions import (
    NotFoundError, ConflictError, InternalError,
    RULE_VOIDED_INVOICE, RULE_EXCEEDS_UNAPPLIED, RULE_EXCEEDS_OUTSTANDING
)
from rentals.utils.logging import get_logger
from rentals.utils.money import (
    ZERO, add, subtract, to_money, parse_positive_amount, parse_positive_id
)

logger = get_logger(__name__)


def status_after_debit(nuevo_saldo: Decimal) -> InvoiceStatus:
    """Estado de la factura después de aplicarle un pago"""
    return InvoiceStatus.PAGADA if nuevo_saldo <= ZERO else InvoiceStatus.PARCIAL


def status_after_credit(invoice: Invoice, nuevo_saldo: Decimal) -> InvoiceStatus:
    """
    Estado de la factura después de revertirle una aplicación.

    Una factura que recupera su monto total vuelve a ABIERTA.
    """
    if invoice.estado == InvoiceStatus.ANULADA:
        return InvoiceStatus.ANULADA
    if nuevo_saldo <= ZERO:
        return InvoiceStatus.PAGADA
    if nuevo_saldo < to_money(invoice.monto_total):
        return InvoiceStatus.PARCIAL
    return InvoiceStatus.ABIERTA


class PaymentApplicationService:
    """
    Motor de aplicación y reversión de pagos.

    Es el único escritor de saldo_no_aplicado, saldo_pendiente, el estado de
    liquidación de las facturas y la tabla aplicaciones_pago.
    """

    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.store = LedgerStore(db)
        self.audit = audit or AuditService(db)

    async def apply_payment(
        self,
        pago_id: int,
        factura_id: int,
        monto: Decimal,
        context: Optional[AuditContext] = None
    ) -> PaymentApplicationResult:
        """Aplicar parte o todo el saldo de un pago a una factura"""
        pago_id = parse_positive_id(pago_id, "pago_id")
        factura_id = parse_positive_id(factura_id, "factura_id")
        amount = parse_positive_amount(monto, "monto_aplicado")

        try:
            async with atomic(self.db):
                payment = await self.store.lock_payment(pago_id)
                if payment is None:
                    raise NotFoundError("Pago", pago_id)

                invoice = await self.store.lock_invoice(factura_id)
                if invoice is None:
                    raise NotFoundError("Factura", factura_id)

                if invoice.estado == InvoiceStatus.ANULADA:
                    raise ConflictError(
                        "No se puede aplicar a una factura anulada",
                        rule=RULE_VOIDED_INVOICE, resource="factura"
                    )
                if amount > to_money(payment.saldo_no_aplicado):
                    raise ConflictError(
                        "Monto excede el saldo no aplicado del pago",
                        rule=RULE_EXCEEDS_UNAPPLIED, resource="pago"
                    )
                if amount > to_money(invoice.saldo_pendiente):
                    raise ConflictError(
                        "Monto excede el saldo pendiente de la factura",
                        rule=RULE_EXCEEDS_OUTSTANDING, resource="factura"
                    )

                application = await self.store.insert_application(pago_id, factura_id, amount)

                nuevo_saldo_pago = subtract(payment.saldo_no_aplicado, amount)
                await self.store.set_payment_balance(payment, nuevo_saldo_pago)

                nuevo_saldo_factura = subtract(invoice.saldo_pendiente, amount)
                nuevo_estado = status_after_debit(nuevo_saldo_factura)
                await self.store.set_invoice_balance(invoice, nuevo_saldo_factura, nuevo_estado)

                result = PaymentApplicationResult(
                    aplicacion_id=application.id,
                    pago_id=pago_id,
                    factura_id=factura_id,
                    monto_aplicado=amount,
                    saldo_no_aplicado=nuevo_saldo_pago,
                    saldo_pendiente=nuevo_saldo_factura,
                    factura_estado=nuevo_estado
                )
        except (NotFoundError, ConflictError) as e:
            logger.warning(f"[APPLY_PAYMENT] Rechazado pago_id={pago_id} factura_id={factura_id} monto={amount}: {e.message}")
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"[APPLY_PAYMENT] Error al aplicar pago pago_id={pago_id} factura_id={factura_id} monto={amount}: {e}",
                exc_info=True
            )
            raise InternalError(
                "No se pudo aplicar el pago",
                {"pago_id": pago_id, "factura_id": factura_id, "monto_aplicado": str(amount)}
            ) from e

        await self.audit.record(
            AuditAction.UPDATE,
            AuditResource.INVOICE,
            factura_id,
            {"pago_id": pago_id, "aplicado": str(amount), "aplicacion_id": result.aplicacion_id},
            context
        )

        logger.info(
            f"[APPLY_PAYMENT] Pago {pago_id} aplicado a factura {factura_id} por {amount} "
            f"(saldo pago {result.saldo_no_aplicado}, saldo factura {result.saldo_pendiente}, {result.factura_estado.value})"
        )
        return result

    async def reverse_application(
        self,
        pago_id: int,
        aplicacion_id: int,
        context: Optional[AuditContext] = None
    ) -> None:
        """Revertir una aplicación: restaura ambos saldos y elimina el registro"""
        pago_id = parse_positive_id(pago_id, "pago_id")
        aplicacion_id = parse_positive_id(aplicacion_id, "aplicacion_id")

        try:
            async with atomic(self.db):
                application = await self.store.lock_application(aplicacion_id, pago_id)
                if application is None:
                    raise NotFoundError("Aplicación", aplicacion_id)

                payment = await self.store.lock_payment(pago_id, include_deleted=True)
                if payment is None:
                    raise NotFoundError("Pago", pago_id)

                invoice = await self.store.lock_invoice(application.factura_id)
                if invoice is None:
                    raise NotFoundError("Factura", application.factura_id)

                factura_id = invoice.id
                amount = to_money(application.monto_aplicado)

                await self.store.set_payment_balance(payment, add(payment.saldo_no_aplicado, amount))

                nuevo_saldo_factura = add(invoice.saldo_pendiente, amount)
                nuevo_estado = status_after_credit(invoice, nuevo_saldo_factura)
                await self.store.set_invoice_balance(invoice, nuevo_saldo_factura, nuevo_estado)

                await self.store.delete_application(application)
        except NotFoundError as e:
            logger.warning(f"[REVERSE_APPLICATION] Rechazado pago_id={pago_id} aplicacion_id={aplicacion_id}: {e.message}")
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"[REVERSE_APPLICATION] Error al revertir aplicacion_id={aplicacion_id} pago_id={pago_id}: {e}",
                exc_info=True
            )
            raise InternalError(
                "No se pudo revertir la aplicación",
                {"pago_id": pago_id, "aplicacion_id": aplicacion_id}
            ) from e

        await self.audit.record(
            AuditAction.UPDATE,
            AuditResource.INVOICE,
            factura_id,
            {"pago_id": pago_id, "revertido": str(amount), "aplicacion_id": aplicacion_id},
            context
        )

        logger.info(f"[REVERSE_APPLICATION] Aplicación {aplicacion_id} revertida: pago {pago_id}, factura {factura_id}, monto {amount}")

    async def list_applications(
        self,
        pago_id: int,
        context: Optional[AuditContext] = None
    ) -> List[PaymentApplicationItem]:
        """Aplicaciones del pago, de la más reciente a la más antigua"""
        pago_id = parse_positive_id(pago_id, "pago_id")

        payment = await self.store.get_payment(pago_id, include_deleted=True)
        if payment is None:
            raise NotFoundError("Pago", pago_id)

        rows = await self.store.list_applications(pago_id)
        items = [
            PaymentApplicationItem(
                id=application.id,
                factura_id=application.factura_id,
                monto_aplicado=to_money(application.monto_aplicado),
                factura_estado=estado
            )
            for application, estado in rows
        ]

        await self.audit.record(
            AuditAction.READ, AuditResource.PAYMENT, pago_id, {"aplicaciones": len(items)}, context
        )
        return items
