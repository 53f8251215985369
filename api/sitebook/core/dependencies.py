"""FastAPI dependencies for injection into route handlers."""

import enum
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from sitebook.core.auth import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


class PrincipalRole(enum.StrEnum):
    """Roles issued by the identity service."""

    MEMBER = "member"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. Only the id and role travel in the token."""

    id: int
    role: PrincipalRole

    @property
    def is_admin(self) -> bool:
        return self.role == PrincipalRole.ADMIN


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Extract and validate the caller from the JWT bearer token."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
        principal_id = int(payload["sub"])
        role = PrincipalRole(payload.get("role", PrincipalRole.MEMBER))
    except (JWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return Principal(id=principal_id, role=role)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require the caller to hold the admin role."""
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal
