from typing import Optional, Dict, Any

from fastapi import status


class RentalSystemException(Exception):
    """Base exception for the rental system"""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.message} (Code: {self.error_code})" if self.error_code else self.message


class NotFoundError(RentalSystemException):
    """El pago, la factura o la aplicación referenciada no existe"""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Optional[Any] = None):
        message = f"{resource} no encontrado"
        if identifier is not None:
            message += f": {identifier}"
        super().__init__(
            message,
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier) if identifier is not None else None}
        )


class ConflictError(RentalSystemException):
    """Violación de una regla de negocio sobre saldos o estados"""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, rule: Optional[str] = None, resource: Optional[str] = None):
        super().__init__(message, "CONFLICT", {"rule": rule, "resource": resource})
        self.rule = rule


class ValidationError(RentalSystemException):
    """Entrada mal formada, detectada antes de tocar la base de datos"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details = {"field": field, "value": str(value) if value is not None else None}
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class InternalError(RentalSystemException):
    """Fallo del almacenamiento durante una unidad de trabajo"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Error interno del servidor", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INTERNAL_SERVER_ERROR", context)


# Voided invoice / unapplied balance / outstanding balance rules
RULE_VOIDED_INVOICE = "voided invoice"
RULE_EXCEEDS_UNAPPLIED = "exceeds unapplied balance"
RULE_EXCEEDS_OUTSTANDING = "exceeds outstanding balance"
