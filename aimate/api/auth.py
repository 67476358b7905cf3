"""Bearer token helpers."""
from __future__ import annotations

import os
from datetime import timedelta

import jwt
from fastapi import HTTPException, status

from ..store.validation import now_utc

DEV_BYPASS_ENV = "AIMATE_DEV_AUTH_BYPASS"
JWT_ALGORITHM = "HS256"


class AuthError(HTTPException):
    def __init__(self, detail: str, code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(status_code=code, detail=detail)


def issue_token(user_id: str, secret: str, *, expire_days: int = 7) -> str:
    """Sign a token identifying ``user_id``."""
    issued = now_utc()
    claims = {
        "sub": user_id,
        "iat": issued,
        "exp": issued + timedelta(days=expire_days),
    }
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, secret: str) -> str:
    """Return the user id carried by ``token``."""
    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Session expired, please log in again.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Not authorized, token failed.") from exc

    user_id = claims.get("sub")
    if not user_id:
        raise AuthError("Token missing subject claim.")
    return str(user_id)


def resolve_user_id(
    authorization: str | None,
    dev_user: str | None,
    *,
    secret: str,
) -> str:
    """Return the authenticated user's id.

    During development/testing set AIMATE_DEV_AUTH_BYPASS=1 and supply X-User-Id.
    """

    if os.getenv(DEV_BYPASS_ENV) == "1":
        if dev_user:
            return dev_user
        raise AuthError("Auth bypass enabled but X-User-Id header missing (dev only).")

    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Not authorized, no token.")

    return decode_token(authorization.split(" ", 1)[1].strip(), secret)
