"""
Authentication dependencies for the API.

Los tokens los emite el servicio de autenticación; aquí solo se verifican
(HS256) y se exige el rol adecuado por ruta.
"""
from typing import List

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from rentals.config import settings
from rentals.database import get_async_db
from rentals.services.audit_service import AuditContext

# Security scheme
security = HTTPBearer(auto_error=False)

# Alias for compatibility
get_db = get_async_db


class CurrentUser(BaseModel):
    id: int
    email: str = ""
    roles: List[str] = Field(default_factory=list)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        return CurrentUser(
            id=int(user_id),
            email=payload.get("email", ""),
            roles=[str(r).upper() for r in payload.get("roles", [])]
        )
    except (jwt.PyJWTError, ValueError):
        raise credentials_exception


def require_roles(*allowed_roles: str):
    """Dependency factory for role-based access control."""
    async def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not any(role in allowed_roles for role in current_user.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Se requiere uno de los siguientes roles: {', '.join(allowed_roles)}"
            )
        return current_user
    return role_checker


# Convenience dependency for different permission levels
require_admin = require_roles("ADMIN")
require_operator = require_roles("ADMIN", "OPER")


def audit_context(request: Request, user: CurrentUser) -> AuditContext:
    return AuditContext(
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
