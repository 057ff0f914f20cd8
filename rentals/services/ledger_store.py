"""
Ledger store: acceso tipado a pagos, facturas y aplicaciones dentro de una
transacción abierta por el llamador.

Las lecturas "for_update" toman un lock exclusivo de fila y refrescan el
estado del identity map, de modo que los saldos leídos son los vigentes
mientras dure la transacción.
"""
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.payment import Payment, PaymentApplication


class LedgerStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Lecturas con lock exclusivo
    async def lock_payment(self, pago_id: int, include_deleted: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == pago_id)
        if not include_deleted:
            stmt = stmt.where(Payment.eliminado_el.is_(None))
        result = await self.db.execute(
            stmt.with_for_update().execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_invoice(self, factura_id: int) -> Optional[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == factura_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_application(self, aplicacion_id: int, pago_id: int) -> Optional[PaymentApplication]:
        result = await self.db.execute(
            select(PaymentApplication)
            .where(
                PaymentApplication.id == aplicacion_id,
                PaymentApplication.pago_id == pago_id
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # Escrituras
    async def insert_application(self, pago_id: int, factura_id: int, monto_aplicado: Decimal) -> PaymentApplication:
        application = PaymentApplication(
            pago_id=pago_id,
            factura_id=factura_id,
            monto_aplicado=monto_aplicado
        )
        self.db.add(application)
        await self.db.flush()
        return application

    async def set_payment_balance(self, payment: Payment, saldo_no_aplicado: Decimal) -> None:
        payment.saldo_no_aplicado = saldo_no_aplicado
        await self.db.flush()

    async def set_invoice_balance(self, invoice: Invoice, saldo_pendiente: Decimal, estado: InvoiceStatus) -> None:
        invoice.saldo_pendiente = saldo_pendiente
        invoice.estado = estado
        await self.db.flush()

    async def delete_application(self, application: PaymentApplication) -> None:
        await self.db.delete(application)
        await self.db.flush()

    # Lecturas sin lock
    async def get_payment(self, pago_id: int, include_deleted: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == pago_id)
        if not include_deleted:
            stmt = stmt.where(Payment.eliminado_el.is_(None))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_applications(self, pago_id: int) -> List[Tuple[PaymentApplication, InvoiceStatus]]:
        """Aplicaciones de un pago junto con el estado de su factura, id descendente"""
        result = await self.db.execute(
            select(PaymentApplication, Invoice.estado)
            .join(Invoice, Invoice.id == PaymentApplication.factura_id)
            .where(PaymentApplication.pago_id == pago_id)
            .order_by(PaymentApplication.id.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def count_applications(self, pago_id: int) -> int:
        result = await self.db.execute(
            select(func.count(PaymentApplication.id)).where(PaymentApplication.pago_id == pago_id)
        )
        return result.scalar_one()
