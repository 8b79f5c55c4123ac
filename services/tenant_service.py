"""Tenant provisioning, lookup and the direct tenant-wide plan upgrade."""

from __future__ import annotations

import re
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.plan_constants import SUPPORTED_PLAN_TIERS, PlanTier, UpgradeStatus
from models.tenant import Tenant
from services.errors import ConflictError, InternalError, NotFoundError, ValidationError
from services.user_service import Actor, ensure_admin, ensure_same_tenant

logger = get_logger(__name__)

_SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,159}$")


def normalize_slug(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def get_tenant(session: Session, tenant_id: uuid.UUID) -> Tenant:
    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found.", code="tenant.not_found")
    return tenant


def get_tenant_by_slug(session: Session, slug: str) -> Tenant:
    normalized = normalize_slug(slug)
    tenant = session.execute(select(Tenant).where(Tenant.slug == normalized)).scalar_one_or_none()
    if tenant is None:
        raise NotFoundError("Tenant not found.", code="tenant.not_found")
    return tenant


def create_tenant(session: Session, *, name: str, slug: str, plan: str = PlanTier.FREE.value) -> Tenant:
    """Provision a tenant with an empty upgrade-request slot."""

    trimmed_name = (name or "").strip()
    normalized_slug = normalize_slug(slug)
    if not trimmed_name:
        raise ValidationError("Tenant name is required.", code="tenant.name_required")
    if not _SLUG_PATTERN.match(normalized_slug):
        raise ValidationError("Tenant slug must be lowercase letters, digits or dashes.", code="tenant.slug_invalid")
    if plan not in {tier.value for tier in SUPPORTED_PLAN_TIERS}:
        raise ValidationError(f"Unknown plan '{plan}'.", code="tenant.plan_invalid")

    tenant = Tenant(name=trimmed_name, slug=normalized_slug, plan=plan, upgrade_status=UpgradeStatus.NONE.value)
    session.add(tenant)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Tenant slug already in use.", code="tenant.slug_taken") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to create tenant slug=%s", normalized_slug)
        raise InternalError("Failed to create tenant.") from exc
    return tenant


def get_tenant_summary(session: Session, *, actor: Actor, slug: str) -> Tenant:
    """Tenant info shown to an admin when inviting users."""

    ensure_admin(actor)
    tenant = get_tenant_by_slug(session, slug)
    ensure_same_tenant(actor, tenant.id)
    return tenant


def upgrade_tenant_plan(session: Session, *, actor: Actor, slug: str) -> Tenant:
    """Move the acting admin's own tenant to the pro plan.

    Pending upgrade requests are left as they are; they can still be approved
    or rejected, and new ones are refused while the tenant is pro.
    """

    ensure_admin(actor)
    tenant = get_tenant_by_slug(session, slug)
    ensure_same_tenant(actor, tenant.id)
    if tenant.plan == PlanTier.PRO.value:
        return tenant

    tenant.plan = PlanTier.PRO.value
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to upgrade tenant=%s", tenant.id)
        raise InternalError("Failed to upgrade tenant.") from exc

    logger.info("tenant.plan_upgraded", extra={"tenantId": str(tenant.id), "actor": str(actor.user_id)})
    return tenant


__all__ = [
    "create_tenant",
    "get_tenant",
    "get_tenant_by_slug",
    "get_tenant_summary",
    "normalize_slug",
    "upgrade_tenant_plan",
]
