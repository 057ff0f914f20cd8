"""
Payment service for registering, querying and soft-deleting payments.
Application of payments to invoices lives in PaymentApplicationService.
"""
from datetime import datetime, timezone
from typing import Optional, Tuple, List

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.database import atomic
from rentals.models.audit import AuditAction, AuditResource
from rentals.models.payment import Payment
from rentals.schemas.payment import PaymentCreate, PaymentUpdate, PaymentResponse
from rentals.services.audit_service import AuditService, AuditContext
from rentals.services.ledger_store import LedgerStore
from rentals.utils.exceptions import NotFoundError, ConflictError, InternalError
from rentals.utils.logging import get_logger
from rentals.utils.money import to_money, parse_positive_id

logger = get_logger(__name__)


class PaymentService:
    """
    Core payment service.

    Responsibilities:
    - Payment registration (saldo_no_aplicado starts equal to monto)
    - Payment queries and updates
    - Soft delete of payments without applications
    """

    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.store = LedgerStore(db)
        self.audit = audit or AuditService(db)

    async def create_payment(
        self,
        payment_data: PaymentCreate,
        created_by_id: Optional[int] = None,
        context: Optional[AuditContext] = None
    ) -> PaymentResponse:
        """Registrar un nuevo pago"""
        monto = to_money(payment_data.monto)
        try:
            async with atomic(self.db):
                payment = Payment(
                    contrato_id=payment_data.contrato_id,
                    forma_pago=payment_data.forma_pago,
                    fecha_pago=payment_data.fecha_pago,
                    referencia=payment_data.referencia,
                    monto=monto,
                    saldo_no_aplicado=monto,
                    notas=payment_data.notas,
                    creado_por=created_by_id
                )
                self.db.add(payment)
                await self.db.flush()
                response = PaymentResponse.model_validate(payment)
        except SQLAlchemyError as e:
            logger.error(f"Error al crear pago monto={monto} contrato_id={payment_data.contrato_id}: {e}", exc_info=True)
            raise InternalError("No se pudo registrar el pago", {"monto": str(monto)}) from e

        await self.audit.record(
            AuditAction.CREATE,
            AuditResource.PAYMENT,
            response.id,
            payment_data.model_dump(mode="json"),
            context
        )
        logger.info(f"Payment created with ID: {response.id}")
        return response

    async def get_payment(self, pago_id: int, context: Optional[AuditContext] = None) -> PaymentResponse:
        """Obtener un pago por ID"""
        pago_id = parse_positive_id(pago_id, "pago_id")
        payment = await self.store.get_payment(pago_id)
        if payment is None:
            raise NotFoundError("Pago", pago_id)
        response = PaymentResponse.model_validate(payment)

        await self.audit.record(AuditAction.READ, AuditResource.PAYMENT, pago_id, None, context)
        return response

    async def update_payment(
        self,
        pago_id: int,
        payment_data: PaymentUpdate,
        context: Optional[AuditContext] = None
    ) -> Tuple[bool, PaymentResponse]:
        """
        Actualizar los datos de un pago.

        Solo se aplican los campos enviados que difieren del valor actual. Si
        cambia el monto, el pago no puede tener aplicaciones y su saldo no
        aplicado pasa a ser el nuevo monto.

        Returns:
            (hubo_cambios, pago actualizado)
        """
        pago_id = parse_positive_id(pago_id, "pago_id")
        payload = payment_data.model_dump(exclude_unset=True)

        try:
            async with atomic(self.db):
                payment = await self.store.lock_payment(pago_id)
                if payment is None:
                    raise NotFoundError("Pago", pago_id)

                changes = {}
                # Columnas NOT NULL: un null explícito se ignora
                for field in ("forma_pago", "fecha_pago"):
                    value = payload.get(field)
                    if value is not None and value != getattr(payment, field):
                        changes[field] = value
                for field in ("referencia", "notas"):
                    if field in payload and payload[field] != getattr(payment, field):
                        changes[field] = payload[field]

                if payload.get("monto") is not None:
                    if await self.store.count_applications(pago_id) > 0:
                        raise ConflictError(
                            "No se puede cambiar el monto de un pago con aplicaciones",
                            rule="payment has applications", resource="pago"
                        )
                    monto = to_money(payload["monto"])
                    if monto != to_money(payment.monto):
                        changes["monto"] = monto
                        changes["saldo_no_aplicado"] = monto

                for field, value in changes.items():
                    setattr(payment, field, value)
                if changes:
                    await self.db.flush()
                response = PaymentResponse.model_validate(payment)
        except SQLAlchemyError as e:
            logger.error(f"Error al actualizar pago {pago_id}: {e}", exc_info=True)
            raise InternalError("No se pudo actualizar el pago", {"pago_id": pago_id}) from e

        if not changes:
            return False, response

        await self.audit.record(
            AuditAction.UPDATE,
            AuditResource.PAYMENT,
            pago_id,
            {k: v for k, v in payment_data.model_dump(mode="json", exclude_unset=True).items() if k in changes},
            context
        )
        logger.info(f"Payment updated: {pago_id} ({', '.join(changes)})")
        return True, response

    async def list_payments(
        self,
        page: int = 1,
        limit: int = 20,
        contrato_id: Optional[int] = None
    ) -> Tuple[List[PaymentResponse], int]:
        """Listar pagos vigentes, más recientes primero"""
        conditions = [Payment.eliminado_el.is_(None)]
        if contrato_id is not None:
            conditions.append(Payment.contrato_id == contrato_id)

        total = (await self.db.execute(
            select(func.count(Payment.id)).where(*conditions)
        )).scalar_one()

        result = await self.db.execute(
            select(Payment)
            .where(*conditions)
            .order_by(Payment.fecha_pago.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        payments = [PaymentResponse.model_validate(p) for p in result.scalars().all()]
        return payments, total

    async def delete_payment(self, pago_id: int, context: Optional[AuditContext] = None) -> None:
        """Eliminar (soft delete) un pago que no tenga aplicaciones"""
        pago_id = parse_positive_id(pago_id, "pago_id")
        try:
            async with atomic(self.db):
                payment = await self.store.lock_payment(pago_id)
                if payment is None:
                    raise NotFoundError("Pago", pago_id)

                if await self.store.count_applications(pago_id) > 0:
                    raise ConflictError(
                        "No se puede eliminar un pago con aplicaciones",
                        rule="payment has applications", resource="pago"
                    )

                payment.eliminado_el = datetime.now(timezone.utc)
                await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error al eliminar pago {pago_id}: {e}", exc_info=True)
            raise InternalError("No se pudo eliminar el pago", {"pago_id": pago_id}) from e

        await self.audit.record(AuditAction.DELETE, AuditResource.PAYMENT, pago_id, None, context)
        logger.info(f"Payment deleted: {pago_id}")
