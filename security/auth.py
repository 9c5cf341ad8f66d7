from __future__ import annotations

from typing import Final

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.errors import auth_invalid_token, auth_role_mismatch
from core.settings import get_settings
from security.principal import AuthPrincipal

token_auth_scheme = HTTPBearer(auto_error=True)
AUTH_ROLES: Final[tuple[str, ...]] = ('admin', 'secretary', 'user',)
ALGORITHM: Final[str] = "HS256"


def _resolve_principal(credentials: HTTPAuthorizationCredentials) -> AuthPrincipal:
    try:
        claims = jwt.decode(credentials.credentials, get_settings().secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError as err:
        raise auth_invalid_token(details={"reason": str(err)}) from err

    user_id = claims.get("sub")
    role = str(claims.get("role") or "").lower()
    if not user_id or role not in AUTH_ROLES:
        raise auth_invalid_token(details={"role": claims.get("role")})

    return AuthPrincipal(user_id=str(user_id), role=role, jwt_token=credentials.credentials)  # type: ignore[arg-type]


async def verify_any_token(
    credentials: HTTPAuthorizationCredentials = Depends(token_auth_scheme),
) -> AuthPrincipal:
    return _resolve_principal(credentials)


async def verify_admin_token(
    credentials: HTTPAuthorizationCredentials = Depends(token_auth_scheme),
) -> AuthPrincipal:
    principal = _resolve_principal(credentials)
    if principal.role != "admin":
        raise auth_role_mismatch(required_role="admin", actual_role=principal.role)
    return principal
