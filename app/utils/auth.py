"""Authentication utilities and dependency injection.

Roles are read from the bearer token, never computed here. The resolved
identity is attached to ``request.state.user`` so the audit middleware can
attribute the request to it.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config.logger import app_logger
from app.models.audit_log import UserRole
from app.utils.local_tokens import decode_local_token

AUDIT_READER_ROLES = frozenset({UserRole.ADMIN.value, UserRole.AUDITOR.value})

# HTTP Bearer token security scheme
security_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Bearer token authentication",
    auto_error=False,  # We'll handle errors manually for better control
)


async def get_auth_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security_scheme),
) -> str:
    """Extract and validate Bearer token from Authorization header.

    Raises:
        HTTPException: If token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials.strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token


async def get_current_user(request: Request, token: str = Depends(get_auth_token)) -> dict:
    """Verify the token and attach the caller's identity to the request.

    Returns:
        dict: ``{"id", "wallet_address", "role"}`` for the caller

    Raises:
        HTTPException: If token is invalid, expired or has no subject
    """
    try:
        payload = decode_local_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = {
        "id": str(user_id),
        "wallet_address": payload.get("wallet_address"),
        "role": payload.get("role") or UserRole.USER.value,
    }
    request.state.user = user
    return user


async def require_audit_reader(user: dict = Depends(get_current_user)) -> dict:
    """Dependency that restricts audit log reads to admins and auditors.

    Raises:
        HTTPException: 403 if the caller's role may not read audit logs
    """
    if user["role"] not in AUDIT_READER_ROLES:
        app_logger.warning(f"Audit log access denied for user {user['id']} with role {user['role']}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or auditor role required",
        )
    return user


# Convenience aliases for cleaner imports
RequireAuditReader = Depends(require_audit_reader)
