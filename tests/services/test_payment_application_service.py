"""
Tests del motor de aplicación y reversión de pagos
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from rentals.models.audit import AuditLog, AuditAction, AuditResource
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.payment import Payment, PaymentApplication
from rentals.services.audit_service import AuditContext
from rentals.services.ledger_store import LedgerStore
from rentals.services.payment_application_service import (
    PaymentApplicationService, status_after_credit, status_after_debit
)
from rentals.utils.exceptions import (
    ConflictError, InternalError, NotFoundError, ValidationError,
    RULE_EXCEEDS_OUTSTANDING, RULE_EXCEEDS_UNAPPLIED, RULE_VOIDED_INVOICE
)


@pytest.mark.services
class TestApplyPayment:
    """Aplicación de pagos a facturas"""

    async def test_exceeds_unapplied_balance_leaves_balances_unchanged(
        self, db_session, make_payment, make_invoice, fetch, count_rows
    ):
        pago_id = await make_payment(monto="100.00")
        factura_id = await make_invoice(monto_total="200.00")
        service = PaymentApplicationService(db_session)

        with pytest.raises(ConflictError) as exc_info:
            await service.apply_payment(pago_id, factura_id, Decimal("150"))

        assert exc_info.value.rule == RULE_EXCEEDS_UNAPPLIED
        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("100.00")
        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("200.00")
        assert invoice.estado == InvoiceStatus.ABIERTA
        assert await count_rows(PaymentApplication) == 0

    async def test_full_application_settles_invoice(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="1000.00")
        factura_id = await make_invoice(monto_total="1000.00")
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("1000"))

        assert result.pago_id == pago_id
        assert result.factura_id == factura_id
        assert result.monto_aplicado == Decimal("1000.00")
        assert result.saldo_no_aplicado == Decimal("0.00")
        assert result.saldo_pendiente == Decimal("0.00")
        assert result.factura_estado == InvoiceStatus.PAGADA

        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("0.00")
        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("0.00")
        assert invoice.estado == InvoiceStatus.PAGADA

    async def test_partial_application_then_reverse(self, db_session, make_payment, make_invoice, fetch, count_rows):
        pago_id = await make_payment(monto="500.00")
        factura_id = await make_invoice(monto_total="1000.00")
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("300"))
        assert result.saldo_pendiente == Decimal("700.00")
        assert result.factura_estado == InvoiceStatus.PARCIAL
        assert result.saldo_no_aplicado == Decimal("200.00")

        await service.reverse_application(pago_id, result.aplicacion_id)

        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("1000.00")
        assert invoice.estado == InvoiceStatus.ABIERTA
        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("500.00")
        assert await count_rows(PaymentApplication, PaymentApplication.id == result.aplicacion_id) == 0

    @pytest.mark.parametrize("monto", ["0.01", "50.00", "1000.00"])
    async def test_voided_invoice_always_conflicts(self, db_session, make_payment, make_invoice, monto):
        pago_id = await make_payment(monto="1000.00")
        factura_id = await make_invoice(monto_total="1000.00", saldo_pendiente="0.00", estado=InvoiceStatus.ANULADA)
        service = PaymentApplicationService(db_session)

        with pytest.raises(ConflictError) as exc_info:
            await service.apply_payment(pago_id, factura_id, Decimal(monto))
        assert exc_info.value.rule == RULE_VOIDED_INVOICE

    async def test_exceeds_outstanding_balance(self, db_session, make_payment, make_invoice):
        pago_id = await make_payment(monto="1000.00")
        factura_id = await make_invoice(monto_total="400.00")
        service = PaymentApplicationService(db_session)

        with pytest.raises(ConflictError) as exc_info:
            await service.apply_payment(pago_id, factura_id, Decimal("400.01"))
        assert exc_info.value.rule == RULE_EXCEEDS_OUTSTANDING

    async def test_last_cent_marks_paid(self, db_session, make_payment, make_invoice):
        """El límite entre PARCIAL y PAGADA está en el último centavo"""
        pago_id = await make_payment(monto="100.00")
        factura_id = await make_invoice(monto_total="100.00")
        service = PaymentApplicationService(db_session)

        first = await service.apply_payment(pago_id, factura_id, Decimal("99.99"))
        assert first.saldo_pendiente == Decimal("0.01")
        assert first.factura_estado == InvoiceStatus.PARCIAL

        second = await service.apply_payment(pago_id, factura_id, Decimal("0.01"))
        assert second.saldo_pendiente == Decimal("0.00")
        assert second.factura_estado == InvoiceStatus.PAGADA
        assert second.saldo_no_aplicado == Decimal("0.00")

    async def test_many_small_applications_sum_exactly(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="1.00")
        factura_id = await make_invoice(monto_total="1.00")
        service = PaymentApplicationService(db_session)

        for _ in range(10):
            await service.apply_payment(pago_id, factura_id, Decimal("0.10"))

        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("0.00")
        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("0.00")
        assert invoice.estado == InvoiceStatus.PAGADA

    async def test_conservation_across_invoices(self, db_session, make_payment, make_invoice, fetch, count_rows):
        """monto = saldo_no_aplicado + suma de aplicaciones"""
        pago_id = await make_payment(monto="900.00")
        facturas = [await make_invoice(monto_total="400.00", contrato_id=i) for i in (1, 2, 3)]
        service = PaymentApplicationService(db_session)

        await service.apply_payment(pago_id, facturas[0], Decimal("400.00"))
        await service.apply_payment(pago_id, facturas[1], Decimal("250.50"))
        await service.apply_payment(pago_id, facturas[2], Decimal("100.25"))

        applications = await service.list_applications(pago_id)
        applied = sum((a.monto_aplicado for a in applications), Decimal("0.00"))
        payment = await fetch(Payment, pago_id)

        assert payment.saldo_no_aplicado == Decimal("149.25")
        assert payment.saldo_no_aplicado + applied == payment.monto

        for factura_id, aplicado in zip(facturas, ("400.00", "250.50", "100.25")):
            invoice = await fetch(Invoice, factura_id)
            assert invoice.saldo_pendiente + Decimal(aplicado) == invoice.monto_total

    async def test_unknown_payment_and_invoice(self, db_session, make_payment, make_invoice):
        pago_id = await make_payment()
        factura_id = await make_invoice()
        service = PaymentApplicationService(db_session)

        with pytest.raises(NotFoundError):
            await service.apply_payment(9999, factura_id, Decimal("10"))
        with pytest.raises(NotFoundError):
            await service.apply_payment(pago_id, 9999, Decimal("10"))

    async def test_deleted_payment_cannot_be_applied(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment()
        factura_id = await make_invoice()
        payment = await fetch(Payment, pago_id)
        payment.eliminado_el = payment.creado_el
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await PaymentApplicationService(db_session).apply_payment(pago_id, factura_id, Decimal("10"))

    @pytest.mark.parametrize("monto", [
        Decimal("0"), Decimal("-10"), Decimal("10.001"), "abc", 10.5, Decimal("1E+30"), "1e30"
    ])
    async def test_invalid_amount_rejected_before_store(self, db_session, monkeypatch, monto):
        async def store_must_not_be_used(*args, **kwargs):
            raise AssertionError("store touched")

        monkeypatch.setattr(LedgerStore, "lock_payment", store_must_not_be_used)
        service = PaymentApplicationService(db_session)

        with pytest.raises(ValidationError):
            await service.apply_payment(1, 1, monto)

    async def test_invalid_ids_rejected(self, db_session):
        service = PaymentApplicationService(db_session)
        with pytest.raises(ValidationError):
            await service.apply_payment(0, 1, Decimal("10"))
        with pytest.raises(ValidationError):
            await service.apply_payment(1, -3, Decimal("10"))
        with pytest.raises(ValidationError):
            await service.apply_payment(2**31, 1, Decimal("10"))

    async def test_rejections_are_idempotent(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="50.00")
        factura_id = await make_invoice(monto_total="500.00")
        service = PaymentApplicationService(db_session)

        for _ in range(3):
            with pytest.raises(ConflictError):
                await service.apply_payment(pago_id, factura_id, Decimal("60"))

        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("50.00")
        assert (await fetch(Invoice, factura_id)).saldo_pendiente == Decimal("500.00")

    async def test_store_failure_rolls_back_every_write(
        self, db_session, make_payment, make_invoice, fetch, count_rows, monkeypatch
    ):
        pago_id = await make_payment(monto="300.00")
        factura_id = await make_invoice(monto_total="300.00")

        async def failing_update(self, invoice, saldo_pendiente, estado):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(LedgerStore, "set_invoice_balance", failing_update)
        service = PaymentApplicationService(db_session)

        with pytest.raises(InternalError) as exc_info:
            await service.apply_payment(pago_id, factura_id, Decimal("100"))

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["pago_id"] == pago_id
        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("300.00")
        assert (await fetch(Invoice, factura_id)).saldo_pendiente == Decimal("300.00")
        assert await count_rows(PaymentApplication) == 0
        assert await count_rows(AuditLog) == 0

    async def test_audit_written_only_on_success(self, db_session, make_payment, make_invoice, fetch, count_rows):
        pago_id = await make_payment(monto="100.00")
        factura_id = await make_invoice(monto_total="100.00")
        service = PaymentApplicationService(db_session)

        with pytest.raises(ConflictError):
            await service.apply_payment(pago_id, factura_id, Decimal("150"))
        assert await count_rows(AuditLog) == 0

        result = await service.apply_payment(pago_id, factura_id, Decimal("40"))
        assert await count_rows(
            AuditLog,
            AuditLog.action == AuditAction.UPDATE,
            AuditLog.resource_type == AuditResource.INVOICE,
            AuditLog.resource_id == factura_id
        ) == 1

        entries = await count_rows(AuditLog)
        assert entries == 1
        assert result.aplicacion_id > 0


@pytest.mark.services
class TestReverseApplication:
    """Reversión de aplicaciones"""

    async def test_round_trip_restores_exact_balances(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="750.00", saldo_no_aplicado="512.34")
        factura_id = await make_invoice(monto_total="1200.00", saldo_pendiente="987.65", estado=InvoiceStatus.PARCIAL)
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("123.45"))
        await service.reverse_application(pago_id, result.aplicacion_id)

        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("512.34")
        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("987.65")
        assert invoice.estado == InvoiceStatus.PARCIAL

    async def test_reversal_of_paid_invoice_returns_partial(self, db_session, make_payment, make_invoice):
        pago_id = await make_payment(monto="1000.00")
        factura_id = await make_invoice(monto_total="1000.00")
        service = PaymentApplicationService(db_session)

        first = await service.apply_payment(pago_id, factura_id, Decimal("600"))
        second = await service.apply_payment(pago_id, factura_id, Decimal("400"))
        assert second.factura_estado == InvoiceStatus.PAGADA

        await service.reverse_application(pago_id, second.aplicacion_id)
        items = await service.list_applications(pago_id)
        assert [item.id for item in items] == [first.aplicacion_id]
        assert items[0].factura_estado == InvoiceStatus.PARCIAL

    async def test_full_reversal_of_past_due_invoice_reopens_it(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="300.00")
        factura_id = await make_invoice(monto_total="300.00", fecha_vencimiento=date.today() - timedelta(days=30))
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("300"))
        await service.reverse_application(pago_id, result.aplicacion_id)

        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("300.00")
        assert invoice.estado == InvoiceStatus.ABIERTA

    async def test_double_reversal_is_not_found(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="500.00")
        factura_id = await make_invoice(monto_total="500.00")
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("200"))
        await service.reverse_application(pago_id, result.aplicacion_id)

        with pytest.raises(NotFoundError):
            await service.reverse_application(pago_id, result.aplicacion_id)

        invoice = await fetch(Invoice, factura_id)
        assert invoice.saldo_pendiente == Decimal("500.00")
        assert invoice.saldo_pendiente <= invoice.monto_total
        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("500.00")

    async def test_application_must_belong_to_payment(self, db_session, make_payment, make_invoice, fetch):
        pago_a = await make_payment(monto="500.00")
        pago_b = await make_payment(monto="500.00")
        factura_id = await make_invoice(monto_total="500.00")
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_a, factura_id, Decimal("200"))

        with pytest.raises(NotFoundError):
            await service.reverse_application(pago_b, result.aplicacion_id)

        assert (await fetch(Payment, pago_a)).saldo_no_aplicado == Decimal("300.00")
        assert (await fetch(Payment, pago_b)).saldo_no_aplicado == Decimal("500.00")

    async def test_reversal_on_voided_invoice_keeps_voided(self, db_session, make_payment, make_invoice, fetch):
        pago_id = await make_payment(monto="500.00")
        factura_id = await make_invoice(monto_total="500.00")
        service = PaymentApplicationService(db_session)

        result = await service.apply_payment(pago_id, factura_id, Decimal("200"))
        invoice = await fetch(Invoice, factura_id)
        invoice.estado = InvoiceStatus.ANULADA
        await db_session.commit()

        await service.reverse_application(pago_id, result.aplicacion_id)

        invoice = await fetch(Invoice, factura_id)
        assert invoice.estado == InvoiceStatus.ANULADA
        assert (await fetch(Payment, pago_id)).saldo_no_aplicado == Decimal("500.00")


@pytest.mark.services
class TestListApplications:

    async def test_newest_first(self, db_session, make_payment, make_invoice):
        pago_id = await make_payment(monto="300.00")
        factura_id = await make_invoice(monto_total="300.00")
        service = PaymentApplicationService(db_session)

        ids = [
            (await service.apply_payment(pago_id, factura_id, Decimal("100"))).aplicacion_id
            for _ in range(3)
        ]
        items = await service.list_applications(pago_id)

        assert [item.id for item in items] == sorted(ids, reverse=True)
        assert all(item.factura_estado == InvoiceStatus.PAGADA for item in items)

    async def test_unknown_payment(self, db_session):
        with pytest.raises(NotFoundError):
            await PaymentApplicationService(db_session).list_applications(12345)

    async def test_payment_without_applications(self, db_session, make_payment):
        pago_id = await make_payment()
        assert await PaymentApplicationService(db_session).list_applications(pago_id) == []

    async def test_listing_records_read_audit(self, db_session, make_payment, count_rows):
        pago_id = await make_payment()

        await PaymentApplicationService(db_session).list_applications(pago_id, context=AuditContext(user_id=4))

        assert await count_rows(
            AuditLog,
            AuditLog.action == AuditAction.READ,
            AuditLog.resource_type == AuditResource.PAYMENT,
            AuditLog.resource_id == pago_id,
            AuditLog.user_id == 4
        ) == 1


class TestStatusTransitions:

    def test_status_after_debit(self):
        assert status_after_debit(Decimal("0.00")) == InvoiceStatus.PAGADA
        assert status_after_debit(Decimal("0.01")) == InvoiceStatus.PARCIAL

    def test_status_after_credit(self):
        invoice = Invoice(
            monto_total=Decimal("1000.00"),
            saldo_pendiente=Decimal("0.00"),
            estado=InvoiceStatus.PAGADA,
            fecha_vencimiento=date(2026, 1, 10)
        )
        assert status_after_credit(invoice, Decimal("0.00")) == InvoiceStatus.PAGADA
        assert status_after_credit(invoice, Decimal("400.00")) == InvoiceStatus.PARCIAL
        # Vencida o no, una factura restaurada por completo vuelve a ABIERTA
        assert status_after_credit(invoice, Decimal("1000.00")) == InvoiceStatus.ABIERTA

        invoice.estado = InvoiceStatus.ANULADA
        assert status_after_credit(invoice, Decimal("1000.00")) == InvoiceStatus.ANULADA
