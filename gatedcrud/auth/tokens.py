# =============================================================================
# Bearer Tokens
# =============================================================================
#
# Principals travel as HS256 JWTs:
#   - sub          principal id
#   - groups       group names (e.g. "admin")
#   - permissions  permission strings (e.g. "widget.read")
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel, Field

from gatedcrud.auth.context import Principal
from gatedcrud.config import Settings, get_settings
from gatedcrud.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str
    exp: datetime
    iat: datetime
    type: str = "access"
    jti: str = ""
    groups: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    def to_principal(self) -> Principal:
        return Principal(id=self.sub, groups=set(self.groups), permissions=set(self.permissions))


# =============================================================================
# Token Creation
# =============================================================================

def create_access_token(principal: Principal, settings: Settings | None = None) -> str:
    """Create a JWT access token carrying the principal's groups and permissions."""
    settings = settings or get_settings()
    now = utc_now()
    expire = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)

    payload = {
        "sub": principal.id,
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": generate_id("tok"),
        "groups": sorted(principal.groups),
        "permissions": sorted(principal.permissions),
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# =============================================================================
# Token Validation
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


def decode_token(token: str, settings: Settings | None = None) -> TokenPayload:
    """
    Decode and validate an access token.

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}")

    if payload.get("type", "access") != "access":
        raise TokenInvalidError(f"Expected access token, got {payload.get('type')}")

    return TokenPayload(
        sub=payload["sub"],
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        type=payload.get("type", "access"),
        jti=payload.get("jti", ""),
        groups=payload.get("groups", []),
        permissions=payload.get("permissions", []),
    )


def principal_from_token(token: str, settings: Settings | None = None) -> Principal | None:
    """
    Resolve a bearer token to a principal.

    Handles:
    - Real JWT tokens (validated with secret)
    - Dev tokens like "user_123" (non-production only, no permissions)
    """
    settings = settings or get_settings()
    try:
        return decode_token(token, settings).to_principal()
    except TokenError as e:
        logger.debug(f"Rejected bearer token: {e}")

    if not settings.is_production and token.startswith("user_"):
        return Principal(id=token)

    return None
