"""
Aritmética monetaria de punto fijo.

Todos los saldos se manejan como Decimal cuantizado a centavos con
ROUND_HALF_UP; nunca se usa float para acumular montos.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from rentals.utils.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Numeric(12, 2): a lo sumo 10 dígitos enteros
MAX_INTEGER_DIGITS = 10
# Rango de las columnas INTEGER de identidad
MAX_ID = 2**31 - 1

Number = Union[Decimal, int, str]


def to_money(value: Number) -> Decimal:
    """Convertir a Decimal con 2 decimales (redondeo half-up)"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def subtract(balance: Number, amount: Number) -> Decimal:
    return to_money(to_money(balance) - to_money(amount))


def add(balance: Number, amount: Number) -> Decimal:
    return to_money(to_money(balance) + to_money(amount))


def parse_positive_amount(value: Any, field: str = "monto") -> Decimal:
    """
    Validar un monto monetario de entrada.

    Acepta Decimal, int o str; rechaza float para no arrastrar errores de
    representación binaria, valores no finitos, no positivos o con más de
    dos decimales o fuera del rango de Numeric(12, 2).
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} debe ser un decimal exacto", field=field, value=value)

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} no es un monto válido", field=field, value=value)

    if not amount.is_finite():
        raise ValidationError(f"{field} no es un monto válido", field=field, value=value)
    if amount <= 0:
        raise ValidationError(f"{field} debe ser mayor a 0", field=field, value=value)
    if amount.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValidationError(f"{field} excede el monto máximo permitido", field=field, value=value)
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} puede tener máximo 2 decimales", field=field, value=value)

    return to_money(amount)


def parse_positive_id(value: Any, field: str = "id") -> int:
    """Validar un identificador numérico positivo"""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} debe ser un número positivo", field=field, value=value)
    if value > MAX_ID:
        raise ValidationError(f"{field} fuera de rango", field=field, value=value)
    return value
