"""Access token issuance and verification."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt

from core.env import env_int, env_str


class AuthTokenError(RuntimeError):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


_JWT_SECRET = env_str("AUTH_JWT_SECRET") or env_str("AUTH_SECRET")
if not _JWT_SECRET:
    raise RuntimeError("AUTH_JWT_SECRET or AUTH_SECRET must be set.")

_JWT_ALG = env_str("AUTH_JWT_ALG") or "HS256"
_JWT_ISSUER = env_str("AUTH_JWT_ISSUER") or "notes-auth"
_JWT_AUDIENCE = env_str("AUTH_JWT_AUDIENCE") or "notes-api"
_ACCESS_TOKEN_TTL = env_int("AUTH_ACCESS_TOKEN_TTL_SECONDS", 60 * 60 * 24, minimum=60)


def create_access_token(*, user_id: str, tenant_id: str, role: str, email: str) -> Tuple[str, int]:
    """Issue a signed access token."""

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": _JWT_AUDIENCE,
        "iss": _JWT_ISSUER,
        "scope": "access",
        "tenant_id": tenant_id,
        "role": role,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=_ACCESS_TOKEN_TTL)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    token = jwt.encode(payload, _JWT_SECRET, algorithm=_JWT_ALG)
    return token, _ACCESS_TOKEN_TTL


def decode_token(token: str, *, scope: Optional[str] = "access") -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            _JWT_SECRET,
            algorithms=[_JWT_ALG],
            audience=_JWT_AUDIENCE,
            issuer=_JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthTokenError("auth.token_expired", "Token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthTokenError("auth.token_invalid", "Token verification failed.") from exc
    if scope and payload.get("scope") != scope:
        raise AuthTokenError("auth.token_invalid", "Token scope mismatch.")
    for claim in ("sub", "tenant_id", "role"):
        if not payload.get(claim):
            raise AuthTokenError("auth.token_invalid", f"Token is missing the '{claim}' claim.")
    return payload


__all__ = ["AuthTokenError", "create_access_token", "decode_token"]
