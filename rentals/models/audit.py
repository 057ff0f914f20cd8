from typing import Optional, Dict, Any
from enum import Enum

from sqlalchemy import String, Text, Integer, Boolean, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from rentals.models.base import Base


class AuditAction(str, Enum):
    """Tipos de acciones de auditoría"""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditResource(str, Enum):
    """Recursos auditables"""
    PAYMENT = "PAYMENT"
    INVOICE = "INVOICE"


class AuditLog(Base):
    """
    Modelo para logs de auditoría del sistema
    Registra las acciones sobre pagos y facturas una vez confirmadas
    """
    __tablename__ = "audit_logs"

    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[AuditAction] = mapped_column(SQLEnum(AuditAction, name="audit_action"), nullable=False)
    resource_type: Mapped[AuditResource] = mapped_column(SQLEnum(AuditResource, name="audit_resource"), nullable=False)
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Metadatos adicionales en JSON
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Información de la sesión
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLog(user_id={self.user_id}, action='{self.action}', resource='{self.resource_type}:{self.resource_id}')>"
