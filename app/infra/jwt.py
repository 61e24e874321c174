"""Access-token decoding for caller identity.

Tokens are issued elsewhere; this module only verifies HS256 signatures and
maps claims to an ``Identity``.
"""

from __future__ import annotations

import jwt
from jwt import InvalidTokenError

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.services.visibility import Identity, Role

# "anonymous" is the absence of a token, never a claim value
_CLAIMABLE_ROLES = {Role.user, Role.moderator, Role.admin}


def encode_access(payload: dict[str, object], *, secret: str | None = None) -> str:
    """Encode a token; used by tests and local tooling."""
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access(token: str, *, secret: str | None = None) -> dict[str, object]:
    """Decode and validate an access token.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    payload = jwt.decode(
        token,
        secret or settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        leeway=5,
        options={"require": ["sub"]},
    )
    return payload


def identity_from_token(token: str, *, secret: str | None = None) -> Identity:
    try:
        claims = decode_access(token, secret=secret)
        user_id = int(str(claims["sub"]))
        role = Role(str(claims.get("role") or Role.user.value))
    except (InvalidTokenError, KeyError, ValueError):
        raise AuthenticationError("Invalid token. Please log in again!") from None
    if role not in _CLAIMABLE_ROLES:
        raise AuthenticationError("Invalid token. Please log in again!")
    return Identity(user_id=user_id, role=role, username=str(claims.get("username") or ""))


__all__ = ["decode_access", "encode_access", "identity_from_token"]
