"""Shared FastAPI dependencies."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from core.roles import UnknownRoleError, role_for
from services.auth_tokens import AuthTokenError, decode_token
from services.errors import ForbiddenError
from services.user_service import Actor, ensure_admin


def _extract_bearer(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    value = header_value.strip()
    if value.lower().startswith("bearer "):
        token = value[7:].strip()
        return token or None
    return None


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": code, "message": message})


def get_current_actor(request: Request) -> Actor:
    """Resolve ``{userId, tenantId, role}`` from the bearer token."""

    cached = getattr(request.state, "actor", None)
    if isinstance(cached, Actor):
        return cached

    token = _extract_bearer(request.headers.get("authorization"))
    if not token:
        raise _unauthorized("auth.required", "Authentication required.")
    try:
        payload = decode_token(token)
        actor = Actor(
            user_id=uuid.UUID(str(payload["sub"])),
            tenant_id=uuid.UUID(str(payload["tenant_id"])),
            role=role_for(payload["role"]),
        )
    except AuthTokenError as exc:
        raise _unauthorized(exc.code, str(exc)) from exc
    except (ValueError, UnknownRoleError) as exc:
        raise _unauthorized("auth.token_invalid", "Token claims are invalid.") from exc

    request.state.actor = actor
    return actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    try:
        return ensure_admin(actor)
    except ForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.to_detail()) from exc
