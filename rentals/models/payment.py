"""
Payment models for tenant payments and their application to invoices.
"""
from decimal import Decimal
from datetime import datetime, date
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    String, Text, Integer, ForeignKey, Numeric, DateTime, Date, CheckConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.models.base import Base
from rentals.models.invoice import Invoice


class PaymentMethod(str, Enum):
    """Formas de pago"""
    EFECTIVO = "EFECTIVO"
    TRANSFERENCIA = "TRANSFERENCIA"
    CHEQUE = "CHEQUE"
    TARJETA = "TARJETA"
    DEPOSITO = "DEPOSITO"


PAYMENT_METHOD_LABELS = {
    PaymentMethod.EFECTIVO: "Efectivo",
    PaymentMethod.TRANSFERENCIA: "Transferencia bancaria",
    PaymentMethod.CHEQUE: "Cheque",
    PaymentMethod.TARJETA: "Tarjeta",
    PaymentMethod.DEPOSITO: "Depósito",
}


class Payment(Base):
    """
    Modelo de pagos
    El saldo no aplicado nace igual al monto y solo lo modifican las aplicaciones
    """
    __tablename__ = "pagos"
    __table_args__ = (
        CheckConstraint("monto > 0", name="monto_positivo"),
        CheckConstraint("saldo_no_aplicado >= 0", name="saldo_no_aplicado_no_negativo"),
        CheckConstraint("saldo_no_aplicado <= monto", name="saldo_no_aplicado_max_monto"),
    )

    contrato_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    forma_pago: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod, name="forma_pago"), nullable=False)
    fecha_pago: Mapped[date] = mapped_column(Date, nullable=False)
    referencia: Mapped[Optional[str]] = mapped_column(String(80), nullable=True,
                                                      comment="Número de boleta, transferencia o cheque")

    # Montos
    monto: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)
    saldo_no_aplicado: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False,
                                                       comment="Monto aún no asignado a facturas")

    notas: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Auditoría
    creado_por: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    eliminado_el: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    aplicaciones: Mapped[List["PaymentApplication"]] = relationship(
        "PaymentApplication",
        back_populates="pago"
    )

    @property
    def is_deleted(self) -> bool:
        return self.eliminado_el is not None

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, monto={self.monto}, saldo_no_aplicado={self.saldo_no_aplicado})>"


class PaymentApplication(Base):
    """
    Modelo de relación pago-factura
    Cada registro asigna parte del saldo de un pago a una factura
    """
    __tablename__ = "aplicaciones_pago"
    __table_args__ = (
        CheckConstraint("monto_aplicado > 0", name="monto_aplicado_positivo"),
    )

    pago_id: Mapped[int] = mapped_column(ForeignKey("pagos.id"), nullable=False, index=True)
    factura_id: Mapped[int] = mapped_column(ForeignKey("facturas.id"), nullable=False, index=True)

    # Monto asignado de este pago a esta factura
    monto_aplicado: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)

    # Relationships
    pago: Mapped["Payment"] = relationship("Payment", back_populates="aplicaciones")
    factura: Mapped["Invoice"] = relationship("Invoice", back_populates="aplicaciones")

    def __repr__(self) -> str:
        return f"<PaymentApplication(pago_id={self.pago_id}, factura_id={self.factura_id}, monto_aplicado={self.monto_aplicado})>"
