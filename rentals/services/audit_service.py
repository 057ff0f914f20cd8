"""
Audit service: persiste eventos de auditoría una vez confirmada la operación
de negocio. Un fallo al auditar se registra en el log y no revierte la
operación ya confirmada.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.audit import AuditLog, AuditAction, AuditResource
from rentals.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditContext:
    """Quién ejecuta la acción y desde dónde"""
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        action: AuditAction,
        resource_type: AuditResource,
        resource_id: Optional[int],
        details: Optional[Dict[str, Any]] = None,
        context: Optional[AuditContext] = None,
        success: bool = True
    ) -> Optional[AuditLog]:
        """Crear entrada de auditoría en la base de datos"""
        context = context or AuditContext()
        entry = AuditLog(
            user_id=context.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            success=success
        )
        try:
            self.db.add(entry)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Error al crear entrada de auditoría {action.value} {resource_type.value}:{resource_id}: {e}",
                exc_info=True
            )
            return None

        logger.debug(f"Auditoría registrada: {action.value} {resource_type.value}:{resource_id} user={context.user_id}")
        return entry
