"""
Password hashing and JWT issuance/verification.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext
import structlog

from neuraslide.infrastructure.config import Settings

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def create_access_token(
    settings: Settings,
    user_id: str,
    email: str,
    role: str,
    team_id: Optional[str] = None,
) -> str:
    """Issue an access token carrying the request identity claims."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "teamId": team_id,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> Optional[Dict[str, Any]]:
    """Return the claims of a valid access token, else None."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.debug("access_token_rejected", reason=type(e).__name__)
        return None
    # Special-purpose tokens are not valid for API access
    if claims.get("type") or not claims.get("sub"):
        return None
    return claims


def create_special_token(settings: Settings, user_id: str, token_type: str) -> str:
    """Issue an email-verification or password-reset token."""
    if token_type == EMAIL_VERIFICATION:
        lifetime = timedelta(hours=settings.email_verification_expires_hours)
    elif token_type == PASSWORD_RESET:
        lifetime = timedelta(hours=settings.password_reset_expires_hours)
    else:
        raise ValueError(f"Unknown token type: {token_type}")

    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "type": token_type, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_special_token(settings: Settings, token: str, token_type: str) -> Optional[str]:
    """Return the user id of a valid special token of ``token_type``."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    if claims.get("type") != token_type:
        return None
    return claims.get("sub")
