"""
Invoice model (facturas de renta mensual).
Las facturas se generan fuera de este servicio; aquí solo se liquidan o anulan.
"""
from decimal import Decimal
from datetime import date
from enum import Enum
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    String, Text, Integer, Numeric, Date, CheckConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.models.base import Base

if TYPE_CHECKING:
    from rentals.models.payment import PaymentApplication


class InvoiceStatus(str, Enum):
    """Estados de la factura"""
    ABIERTA = "ABIERTA"      # Sin pagos aplicados
    PARCIAL = "PARCIAL"      # Pagada parcialmente
    PAGADA = "PAGADA"        # Saldo en cero
    VENCIDA = "VENCIDA"      # Vencida sin pago completo
    ANULADA = "ANULADA"      # Anulada, no admite aplicaciones


INVOICE_STATUS_LABELS = {
    InvoiceStatus.ABIERTA: "Abierta",
    InvoiceStatus.PARCIAL: "Pago parcial",
    InvoiceStatus.PAGADA: "Pagada",
    InvoiceStatus.VENCIDA: "Vencida",
    InvoiceStatus.ANULADA: "Anulada",
}


class Invoice(Base):
    """
    Modelo de facturas
    """
    __tablename__ = "facturas"
    __table_args__ = (
        CheckConstraint("saldo_pendiente >= 0", name="saldo_pendiente_no_negativo"),
        CheckConstraint("monto_total >= 0", name="monto_total_no_negativo"),
    )

    # Contrato y periodo facturado
    contrato_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    numero_factura: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    anio_periodo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mes_periodo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Fechas
    fecha_emision: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    fecha_vencimiento: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    detalle: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Montos
    monto_total: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False,
                                                 comment="Monto original de la factura")
    saldo_pendiente: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False,
                                                     comment="Saldo aún no liquidado por pagos aplicados")

    estado: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name="factura_estado"),
        default=InvoiceStatus.ABIERTA,
        nullable=False,
        index=True
    )

    # Relationships
    aplicaciones: Mapped[List["PaymentApplication"]] = relationship(
        "PaymentApplication",
        back_populates="factura"
    )

    @property
    def is_voided(self) -> bool:
        return self.estado == InvoiceStatus.ANULADA

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, estado='{self.estado}', saldo_pendiente={self.saldo_pendiente})>"
