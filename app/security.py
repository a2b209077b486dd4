"""
Bearer token helpers.

Tokens are issued by the auth service and carry ``userId``, ``email`` and
``role`` claims. ``create_access_token`` exists for scripts and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from app.settings import settings


@dataclass(frozen=True)
class Caller:
    """Identity resolved from a bearer token."""

    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


class TokenError(Exception):
    """The bearer token is missing, malformed or expired."""


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_in: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(hours=settings.jwt_expire_hours))
    claims = {"userId": user_id, "email": email, "role": getattr(role, "value", role), "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Caller:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc

    user_id = claims.get("userId")
    if not user_id:
        raise TokenError("Invalid token")
    return Caller(user_id=str(user_id), email=claims.get("email", ""), role=claims.get("role", ""))
