"""User lookups, registration and the admin-is-always-Pro invariant."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.plan_constants import UserRoleKey
from core.roles import Role, UnknownRoleError, role_for
from models.user import User
from services.auth.hashing import hash_password
from services.errors import ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError

logger = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Actor:
    """Authenticated identity performing an operation."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, tenant_id=user.tenant_id, role=role_for(user.role))


def ensure_admin(actor: Actor) -> Actor:
    if not actor.role.can_manage_entitlements:
        raise ForbiddenError("Admin role required.", code="rbac.admin_required")
    return actor


def ensure_same_tenant(actor: Actor, tenant_id: uuid.UUID) -> None:
    if actor.tenant_id != tenant_id:
        logger.warning(
            "tenant.cross_tenant_blocked",
            extra={"actor": str(actor.user_id), "actorTenant": str(actor.tenant_id), "targetTenant": str(tenant_id)},
        )
        raise ForbiddenError("Access denied to this tenant.", code="tenant.cross_tenant")


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def enforce_admin_pro(session: Session, user: User) -> bool:
    """Repair ``is_pro`` for admins. Returns ``True`` when a write happened."""

    if not role_for(user.role).is_admin or user.is_pro:
        return False
    user.is_pro = True
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to restore Pro flag for admin=%s", user.id)
        raise InternalError("Failed to load user.") from exc
    logger.info("user.admin_pro_restored", extra={"userId": str(user.id)})
    return True


def load_user(session: Session, user_id: uuid.UUID, *, tenant_id: Optional[uuid.UUID] = None) -> User:
    """Fetch a user, enforcing tenant scope and the admin Pro invariant."""

    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.", code="user.not_found")
    if tenant_id is not None and user.tenant_id != tenant_id:
        raise ForbiddenError("User belongs to another tenant.", code="tenant.cross_tenant")
    enforce_admin_pro(session, user)
    return user


def load_actor_user(session: Session, actor: Actor) -> User:
    """Reload the acting user; the token's role must still match storage."""

    user = load_user(session, actor.user_id, tenant_id=actor.tenant_id)
    if role_for(user.role) is not actor.role:
        raise ForbiddenError("Role changed since the token was issued. Sign in again.", code="auth.role_stale")
    return user


def fetch_user_by_email(session: Session, email: str) -> Optional[User]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return session.execute(select(User).where(User.email == normalized)).scalar_one_or_none()


def register_user(
    session: Session,
    *,
    actor: Actor,
    email: str,
    password: str,
    role: str = UserRoleKey.MEMBER.value,
) -> User:
    """Create a user inside the acting admin's tenant. Admins start with Pro."""

    ensure_admin(actor)
    normalized = normalize_email(email)
    if not normalized or not password:
        raise ValidationError("Email and password are required.", code="user.fields_required")
    if not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Email address is invalid.", code="user.email_invalid")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
            code="user.password_too_short",
        )
    try:
        resolved_role = role_for(role or UserRoleKey.MEMBER.value)
    except UnknownRoleError as exc:
        raise ValidationError(str(exc), code="user.role_invalid") from exc

    if fetch_user_by_email(session, normalized) is not None:
        raise ConflictError("User already exists.", code="user.exists")

    user = User(
        tenant_id=actor.tenant_id,
        email=normalized,
        password_hash=hash_password(password),
        role=resolved_role.value,
        is_pro=resolved_role.is_admin,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("User already exists.", code="user.exists") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to register user in tenant=%s", actor.tenant_id)
        raise InternalError("Failed to register user.") from exc

    logger.info(
        "user.registered",
        extra={"userId": str(user.id), "tenantId": str(actor.tenant_id), "role": resolved_role.value, "actor": str(actor.user_id)},
    )
    return user


def list_tenant_users(session: Session, *, actor: Actor, email: Optional[str] = None) -> List[User]:
    ensure_admin(actor)
    stmt = select(User).where(User.tenant_id == actor.tenant_id)
    normalized = normalize_email(email)
    if normalized:
        stmt = stmt.where(User.email == normalized)
    users = list(session.execute(stmt.order_by(User.created_at, User.email)).scalars())
    for user in users:
        enforce_admin_pro(session, user)
    return users


__all__ = [
    "Actor",
    "enforce_admin_pro",
    "ensure_admin",
    "ensure_same_tenant",
    "fetch_user_by_email",
    "list_tenant_users",
    "load_actor_user",
    "load_user",
    "normalize_email",
    "register_user",
]
