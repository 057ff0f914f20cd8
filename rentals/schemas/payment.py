"""
Payment schemas for request/response serialization and validation.
"""
from decimal import Decimal
from datetime import datetime, date
from typing import Annotated, Optional, List

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

from rentals.models.invoice import InvoiceStatus
from rentals.models.payment import PaymentMethod
from rentals.utils.money import MAX_ID

# Montos viajan como string con 2 decimales para no perder precisión en JSON
Money = Annotated[Decimal, PlainSerializer(lambda v: f"{v:.2f}", return_type=str, when_used="json")]


class PaymentCreate(BaseModel):
    """Schema para registrar un pago"""
    contrato_id: Optional[int] = Field(None, gt=0, le=MAX_ID, description="ID del contrato")
    forma_pago: PaymentMethod = Field(description="Forma de pago")
    fecha_pago: date = Field(description="Fecha del pago")
    monto: Decimal = Field(gt=0, max_digits=12, decimal_places=2, description="Monto del pago")
    referencia: Optional[str] = Field(None, max_length=80, description="Referencia del pago")
    notas: Optional[str] = Field(None, max_length=255, description="Notas adicionales")

    @field_validator('forma_pago', mode='before')
    @classmethod
    def normalize_forma_pago(cls, v):
        """Normalizar forma_pago: convierte a mayúsculas"""
        if isinstance(v, str):
            return v.upper()
        return v


class PaymentUpdate(BaseModel):
    """
    Schema para actualizar un pago.
    Solo se modifican los campos enviados; el monto no puede cambiar si el
    pago ya tiene aplicaciones.
    """
    forma_pago: Optional[PaymentMethod] = None
    fecha_pago: Optional[date] = None
    monto: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    referencia: Optional[str] = Field(None, max_length=80)
    notas: Optional[str] = Field(None, max_length=255)

    @field_validator('forma_pago', mode='before')
    @classmethod
    def normalize_forma_pago(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class PaymentResponse(BaseModel):
    """Schema de respuesta para pagos"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    contrato_id: Optional[int] = None
    forma_pago: PaymentMethod
    fecha_pago: date
    referencia: Optional[str] = None
    monto: Money
    saldo_no_aplicado: Money
    notas: Optional[str] = None
    creado_por: Optional[int] = None
    creado_el: datetime


# Aplicaciones de pago
class PaymentApplicationCreate(BaseModel):
    """Schema para aplicar un pago a una factura"""
    factura_id: int = Field(gt=0, le=MAX_ID, description="ID de la factura a liquidar")
    monto_aplicado: Decimal = Field(gt=0, max_digits=12, decimal_places=2, description="Monto a aplicar")


class PaymentApplicationResult(BaseModel):
    """Resultado de aplicar un pago a una factura"""
    aplicacion_id: int
    pago_id: int
    factura_id: int
    monto_aplicado: Money
    saldo_no_aplicado: Money = Field(description="Saldo del pago después de aplicar")
    saldo_pendiente: Money = Field(description="Saldo de la factura después de aplicar")
    factura_estado: InvoiceStatus


class PaymentApplicationItem(BaseModel):
    """Aplicación listada para un pago"""
    id: int
    factura_id: int
    monto_aplicado: Money
    factura_estado: InvoiceStatus


class PaymentApplicationListResponse(BaseModel):
    data: List[PaymentApplicationItem]
