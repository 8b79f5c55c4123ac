"""Upgrade request workflow and direct Pro grant/revoke for tenant users.

A tenant holds a single upgrade-request slot::

    none -> pending -> approved | rejected -> pending -> ...

Every transition out of a status is a conditional ``UPDATE`` keyed on the
status it expects, so two racing callers cannot both win. Approval writes
the tenant transition and the requester's Pro flag in one transaction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.plan_constants import DEFAULT_UPGRADE_REASON, PlanTier, UpgradeStatus
from core.roles import role_for
from models.tenant import Tenant
from models.user import User
from services.entitlement_service import TenantSnapshot, UserSnapshot, resolve_effective_status
from services.errors import (
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from services.tenant_service import get_tenant
from services.user_service import Actor, ensure_admin, ensure_same_tenant, load_user

logger = get_logger(__name__)

MAX_REASON_LENGTH = 1000


@dataclass(frozen=True)
class UserRef:
    id: uuid.UUID
    email: Optional[str]


@dataclass(frozen=True)
class UpgradeStatusView:
    tenant_id: uuid.UUID
    status: str
    effective_status: Optional[str]
    requested_by: Optional[UserRef]
    requested_at: Optional[datetime]
    reviewed_by: Optional[UserRef]
    reviewed_at: Optional[datetime]
    reason: Optional[str]


@dataclass(frozen=True)
class PendingRequestSummary:
    tenant_id: uuid.UUID
    tenant_name: str
    tenant_slug: str
    requested_by: Optional[UserRef]
    requested_at: Optional[datetime]
    reason: Optional[str]
    tenant_created_at: Optional[datetime]


@dataclass(frozen=True)
class UpgradeReviewResult:
    tenant_id: uuid.UUID
    tenant_name: str
    status: str
    reviewed_at: Optional[datetime]
    reason: Optional[str]
    user: Optional[UserRef] = None
    user_is_pro: Optional[bool] = None
    changed: bool = True


@dataclass(frozen=True)
class UserProResult:
    user_id: uuid.UUID
    is_pro: bool
    cancellation_reason: Optional[str]
    cancelled_at: Optional[datetime]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_reason(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if len(trimmed) > MAX_REASON_LENGTH:
        raise ValidationError(f"Reason must be at most {MAX_REASON_LENGTH} characters.", code="upgrade.reason_too_long")
    return trimmed


def _user_ref(session: Session, user_id: Optional[uuid.UUID]) -> Optional[UserRef]:
    if user_id is None:
        return None
    user = session.get(User, user_id)
    return UserRef(id=user_id, email=user.email if user else None)


def _commit(session: Session, action: str, tenant_id: uuid.UUID) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to %s for tenant=%s", action, tenant_id)
        raise InternalError(f"Failed to {action}.") from exc


def _transition(session: Session, tenant_id: uuid.UUID, *conditions: Any, values: Dict[str, Any]) -> bool:
    """Apply ``values`` only while ``conditions`` still hold. Returns whether a row moved."""

    stmt = (
        update(Tenant)
        .where(Tenant.id == tenant_id, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = session.execute(stmt)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Upgrade status transition failed for tenant=%s", tenant_id)
        raise InternalError("Failed to update upgrade request.") from exc
    return result.rowcount == 1


# ----------------------------------------------------------------------
# Member actions
# ----------------------------------------------------------------------


def request_upgrade(session: Session, *, actor: Actor, tenant_id: uuid.UUID, reason: Optional[str] = None) -> UpgradeStatusView:
    """Open the tenant's upgrade request for ``actor``."""

    ensure_same_tenant(actor, tenant_id)
    tenant = get_tenant(session, tenant_id)
    requester = load_user(session, actor.user_id, tenant_id=tenant_id)
    if tenant.plan == PlanTier.PRO.value:
        raise ConflictError("Tenant is already on Pro plan.", code="upgrade.already_pro")
    if tenant.upgrade_status == UpgradeStatus.PENDING.value:
        raise ConflictError("Upgrade request is already pending.", code="upgrade.already_pending")
    if not role_for(requester.role).can_request_upgrade or requester.is_pro:
        raise ConflictError("User already has Pro access.", code="upgrade.already_pro")

    now = _now()
    moved = _transition(
        session,
        tenant_id,
        Tenant.upgrade_status != UpgradeStatus.PENDING.value,
        Tenant.plan != PlanTier.PRO.value,
        values={
            "upgrade_status": UpgradeStatus.PENDING.value,
            "upgrade_requested_by": requester.id,
            "upgrade_requested_at": now,
            "upgrade_reviewed_by": None,
            "upgrade_reviewed_at": None,
            "upgrade_reason": _clean_reason(reason) or DEFAULT_UPGRADE_REASON,
            "updated_at": now,
        },
    )
    if not moved:
        session.rollback()
        session.refresh(tenant)
        if tenant.plan == PlanTier.PRO.value:
            raise ConflictError("Tenant is already on Pro plan.", code="upgrade.already_pro")
        raise ConflictError("Upgrade request is already pending.", code="upgrade.already_pending")

    _commit(session, "submit upgrade request", tenant_id)
    logger.info("upgrade.requested", extra={"tenantId": str(tenant_id), "requester": str(requester.id)})
    return get_upgrade_status(session, tenant_id=tenant_id, viewer=actor)


def get_upgrade_status(session: Session, *, tenant_id: uuid.UUID, viewer: Optional[Actor] = None) -> UpgradeStatusView:
    """Stored request fields, plus the status to display for ``viewer`` if given."""

    if viewer is not None:
        ensure_same_tenant(viewer, tenant_id)
    tenant = get_tenant(session, tenant_id)
    effective: Optional[str] = None
    if viewer is not None:
        user = load_user(session, viewer.user_id, tenant_id=tenant_id)
        effective = resolve_effective_status(TenantSnapshot.from_model(tenant), UserSnapshot.from_model(user))
    return UpgradeStatusView(
        tenant_id=tenant.id,
        status=tenant.upgrade_status or UpgradeStatus.NONE.value,
        effective_status=effective,
        requested_by=_user_ref(session, tenant.upgrade_requested_by),
        requested_at=tenant.upgrade_requested_at,
        reviewed_by=_user_ref(session, tenant.upgrade_reviewed_by),
        reviewed_at=tenant.upgrade_reviewed_at,
        reason=tenant.upgrade_reason,
    )


# ----------------------------------------------------------------------
# Admin actions
# ----------------------------------------------------------------------


def list_pending_requests(session: Session, *, actor: Actor) -> List[PendingRequestSummary]:
    """Every tenant with a pending request. Admin only, spans all tenants."""

    ensure_admin(actor)
    tenants = session.execute(
        select(Tenant)
        .where(Tenant.upgrade_status == UpgradeStatus.PENDING.value)
        .order_by(Tenant.upgrade_requested_at, Tenant.name)
    ).scalars()
    return [
        PendingRequestSummary(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            tenant_slug=tenant.slug,
            requested_by=_user_ref(session, tenant.upgrade_requested_by),
            requested_at=tenant.upgrade_requested_at,
            reason=tenant.upgrade_reason,
            tenant_created_at=tenant.created_at,
        )
        for tenant in tenants
    ]


def _load_requester(session: Session, tenant: Tenant) -> User:
    requester_id = tenant.upgrade_requested_by
    if requester_id is None:
        raise ConflictError("Invalid request: missing requester.", code="upgrade.requester_missing")
    requester = session.get(User, requester_id)
    if requester is None or requester.tenant_id != tenant.id:
        raise NotFoundError("Requesting user not found.", code="upgrade.requester_not_found")
    return requester


def approve_upgrade(
    session: Session,
    *,
    actor: Actor,
    tenant_id: uuid.UUID,
    reason: Optional[str] = None,
) -> UpgradeReviewResult:
    """Grant Pro to the original requester and mark the request approved.

    Re-running approval on a tenant already approved for a requester who is
    still Pro changes nothing and returns ``changed=False``.
    """

    ensure_admin(actor)
    ensure_same_tenant(actor, tenant_id)
    tenant = get_tenant(session, tenant_id)
    cleaned_reason = _clean_reason(reason)

    if tenant.upgrade_status == UpgradeStatus.APPROVED.value and tenant.upgrade_requested_by is not None:
        existing = session.get(User, tenant.upgrade_requested_by)
        if existing is not None and existing.tenant_id == tenant.id and existing.is_pro:
            logger.info("upgrade.approve_noop", extra={"tenantId": str(tenant_id), "actor": str(actor.user_id)})
            return UpgradeReviewResult(
                tenant_id=tenant.id,
                tenant_name=tenant.name,
                status=tenant.upgrade_status,
                reviewed_at=tenant.upgrade_reviewed_at,
                reason=tenant.upgrade_reason,
                user=UserRef(id=existing.id, email=existing.email),
                user_is_pro=True,
                changed=False,
            )

    if tenant.upgrade_status != UpgradeStatus.PENDING.value:
        raise InvalidStateError("No pending upgrade request for this tenant.", code="upgrade.not_pending")
    requester = _load_requester(session, tenant)

    now = _now()
    values: Dict[str, Any] = {
        "upgrade_status": UpgradeStatus.APPROVED.value,
        "upgrade_reviewed_by": actor.user_id,
        "upgrade_reviewed_at": now,
        "updated_at": now,
    }
    if cleaned_reason:
        values["upgrade_reason"] = cleaned_reason
    moved = _transition(
        session,
        tenant_id,
        Tenant.upgrade_status == UpgradeStatus.PENDING.value,
        Tenant.upgrade_requested_by == requester.id,
        values=values,
    )
    if not moved:
        session.rollback()
        raise InvalidStateError("Upgrade request changed while it was being reviewed.", code="upgrade.not_pending")

    requester.is_pro = True
    requester.pro_cancellation_reason = None
    requester.pro_cancelled_at = None
    requester.pro_cancelled_by = None
    _commit(session, "approve upgrade request", tenant_id)
    session.refresh(tenant)

    logger.info(
        "upgrade.approved",
        extra={"tenantId": str(tenant_id), "requester": str(requester.id), "actor": str(actor.user_id)},
    )
    return UpgradeReviewResult(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        status=tenant.upgrade_status,
        reviewed_at=tenant.upgrade_reviewed_at,
        reason=tenant.upgrade_reason,
        user=UserRef(id=requester.id, email=requester.email),
        user_is_pro=requester.is_pro,
    )


def reject_upgrade(
    session: Session,
    *,
    actor: Actor,
    tenant_id: uuid.UUID,
    reason: Optional[str] = None,
) -> UpgradeReviewResult:
    ensure_admin(actor)
    ensure_same_tenant(actor, tenant_id)
    tenant = get_tenant(session, tenant_id)
    if tenant.upgrade_status != UpgradeStatus.PENDING.value:
        raise InvalidStateError("No pending upgrade request for this tenant.", code="upgrade.not_pending")

    now = _now()
    values: Dict[str, Any] = {
        "upgrade_status": UpgradeStatus.REJECTED.value,
        "upgrade_reviewed_by": actor.user_id,
        "upgrade_reviewed_at": now,
        "updated_at": now,
    }
    cleaned_reason = _clean_reason(reason)
    if cleaned_reason:
        values["upgrade_reason"] = cleaned_reason
    moved = _transition(session, tenant_id, Tenant.upgrade_status == UpgradeStatus.PENDING.value, values=values)
    if not moved:
        session.rollback()
        raise InvalidStateError("Upgrade request changed while it was being reviewed.", code="upgrade.not_pending")

    _commit(session, "reject upgrade request", tenant_id)
    session.refresh(tenant)
    logger.info("upgrade.rejected", extra={"tenantId": str(tenant_id), "actor": str(actor.user_id)})
    return UpgradeReviewResult(
        tenant_id=tenant.id,
        tenant_name=tenant.name,
        status=tenant.upgrade_status,
        reviewed_at=tenant.upgrade_reviewed_at,
        reason=tenant.upgrade_reason,
    )


def grant_user_pro(session: Session, *, actor: Actor, tenant_id: uuid.UUID, target_user_id: uuid.UUID) -> UserProResult:
    """Give ``target_user_id`` Pro directly, outside the request cycle."""

    ensure_admin(actor)
    ensure_same_tenant(actor, tenant_id)
    target = load_user(session, target_user_id, tenant_id=tenant_id)

    target.is_pro = True
    target.pro_cancellation_reason = None
    target.pro_cancelled_at = None
    target.pro_cancelled_by = None
    _commit(session, "grant user Pro", tenant_id)

    logger.info("user.pro_granted", extra={"tenantId": str(tenant_id), "target": str(target.id), "actor": str(actor.user_id)})
    return UserProResult(user_id=target.id, is_pro=True, cancellation_reason=None, cancelled_at=None)


def revoke_user_pro(
    session: Session,
    *,
    actor: Actor,
    tenant_id: uuid.UUID,
    target_user_id: uuid.UUID,
    reason: Optional[str],
) -> UserProResult:
    """Withdraw a member's Pro flag. Admins always keep Pro."""

    ensure_admin(actor)
    ensure_same_tenant(actor, tenant_id)
    cleaned_reason = _clean_reason(reason)
    if not cleaned_reason:
        raise ValidationError("A cancellation reason is required.", code="user.reason_required")
    target = load_user(session, target_user_id, tenant_id=tenant_id)
    if not role_for(target.role).pro_revocable:
        raise ConflictError("Admins always keep Pro access.", code="user.target_is_admin")

    target.is_pro = False
    target.pro_cancellation_reason = cleaned_reason
    target.pro_cancelled_at = _now()
    target.pro_cancelled_by = actor.user_id
    _commit(session, "revoke user Pro", tenant_id)

    logger.info("user.pro_revoked", extra={"tenantId": str(tenant_id), "target": str(target.id), "actor": str(actor.user_id)})
    return UserProResult(
        user_id=target.id,
        is_pro=False,
        cancellation_reason=target.pro_cancellation_reason,
        cancelled_at=target.pro_cancelled_at,
    )


__all__ = [
    "PendingRequestSummary",
    "UpgradeReviewResult",
    "UpgradeStatusView",
    "UserProResult",
    "UserRef",
    "approve_upgrade",
    "get_upgrade_status",
    "grant_user_pro",
    "list_pending_requests",
    "reject_upgrade",
    "request_upgrade",
    "revoke_user_pro",
]
