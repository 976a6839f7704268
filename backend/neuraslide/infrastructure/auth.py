"""
Authentication for NeuraSlide API.

Bearer JWT authentication used as a FastAPI dependency on all protected
routes. The verified claims are exposed to handlers as an ``Identity``.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.exceptions import AuthenticationError, AuthorizationError
from neuraslide.infrastructure.security import decode_access_token

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# Team owners manage their own team only; the console is for platform admins
ADMIN_ROLES = ("admin",)


@dataclass(frozen=True)
class Identity:
    """Claims of an authenticated request."""
    sub: str
    email: str
    role: str
    team_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.sub

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def require_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Identity:
    """
    FastAPI dependency that enforces Bearer token authentication.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(identity: Identity = Depends(require_auth)):
            ...
    """
    claims = decode_access_token(settings, credentials.credentials) if credentials else None
    if claims is None:
        # Same response whether the token is missing, malformed or expired
        logger.info("auth_rejected", path=request.url.path, method=request.method)
        raise AuthenticationError()

    return Identity(
        sub=str(claims["sub"]),
        email=claims.get("email", ""),
        role=claims.get("role", "member"),
        team_id=claims.get("teamId"),
    )


async def require_admin(identity: Identity = Depends(require_auth)) -> Identity:
    """Allow only platform admins through."""
    if not identity.is_admin:
        logger.warning("admin_access_denied", user_id=identity.sub, role=identity.role)
        raise AuthorizationError("Admin access required")
    return identity
