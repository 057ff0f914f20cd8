"""
Invoice schemas.
"""
from datetime import datetime, date
from typing import Optional

from pydantic import BaseModel, ConfigDict

from rentals.models.invoice import InvoiceStatus
from rentals.schemas.payment import Money


class InvoiceResponse(BaseModel):
    """Schema de respuesta para facturas"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    contrato_id: Optional[int] = None
    numero_factura: Optional[str] = None
    anio_periodo: Optional[int] = None
    mes_periodo: Optional[int] = None
    fecha_emision: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    detalle: Optional[str] = None
    monto_total: Money
    saldo_pendiente: Money
    estado: InvoiceStatus
    creado_el: datetime
    actualizado_el: datetime


class InvoiceVoidResult(BaseModel):
    id: int
    estado: InvoiceStatus
    estado_anterior: InvoiceStatus
