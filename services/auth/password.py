"""Email/password authentication flows."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from core.logging import get_logger
from models.tenant import Tenant
from models.user import User
from services.auth.hashing import verify_password
from services.auth_tokens import create_access_token
from services.errors import NotesServiceError, ValidationError
from services.user_service import enforce_admin_pro, fetch_user_by_email

logger = get_logger(__name__)


class AuthServiceError(NotesServiceError):
    """Raised when credentials cannot be verified."""

    status_code = 401
    default_code = "auth.invalid_credentials"


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    expires_in: int
    user: User
    tenant: Tenant


def login_user(session: Session, *, email: str, password: str) -> LoginResult:
    """Verify credentials and issue an access token carrying tenant and role."""

    if not email or not password:
        raise ValidationError("Email and password are required.", code="auth.fields_required")

    user = fetch_user_by_email(session, email)
    if user is None or not verify_password(user.password_hash, password):
        raise AuthServiceError("Invalid credentials.")

    enforce_admin_pro(session, user)
    tenant = session.get(Tenant, user.tenant_id)
    if tenant is None:
        logger.error("User %s references missing tenant %s", user.id, user.tenant_id)
        raise AuthServiceError("Invalid credentials.")

    token, expires_in = create_access_token(
        user_id=str(user.id),
        tenant_id=str(user.tenant_id),
        role=user.role,
        email=user.email,
    )
    logger.info("auth.login", extra={"userId": str(user.id), "tenantId": str(user.tenant_id)})
    return LoginResult(access_token=token, expires_in=expires_in, user=user, tenant=tenant)


__all__ = ["AuthServiceError", "LoginResult", "login_user"]
