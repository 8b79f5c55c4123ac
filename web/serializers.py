"""Model-to-schema conversion shared by the routers."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from models.tenant import Tenant
from models.user import User
from schemas.api.auth import EntitlementSchema, TenantSchema, UserSchema, UserSummarySchema
from schemas.api.upgrades import UserRefSchema
from services.entitlement_service import EntitlementDecision
from services.upgrade_service import UserRef


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_tenant(tenant: Tenant) -> TenantSchema:
    return TenantSchema(
        id=str(tenant.id),
        name=tenant.name,
        slug=tenant.slug,
        plan=tenant.plan,
        noteLimit=tenant.note_limit,
    )


def serialize_entitlement(decision: EntitlementDecision) -> EntitlementSchema:
    return EntitlementSchema(
        canCreateNote=decision.can_create_note,
        canRequestUpgrade=decision.can_request_upgrade,
        effectiveStatus=decision.effective_status,
        noteLimit=decision.note_limit,
        noteCount=decision.note_count,
        remaining=decision.remaining,
    )


def serialize_user(
    user: User,
    *,
    tenant: Optional[Tenant] = None,
    entitlement: Optional[EntitlementDecision] = None,
) -> UserSchema:
    return UserSchema(
        id=str(user.id),
        email=user.email,
        role=user.role,
        isPro=bool(user.is_pro),
        proCancellationReason=user.pro_cancellation_reason,
        proCancelledAt=iso(user.pro_cancelled_at),
        tenant=serialize_tenant(tenant) if tenant is not None else None,
        entitlement=serialize_entitlement(entitlement) if entitlement is not None else None,
    )


def serialize_user_summary(user: User) -> UserSummarySchema:
    return UserSummarySchema(id=str(user.id), email=user.email, role=user.role, isPro=bool(user.is_pro))


def serialize_user_ref(ref: Optional[UserRef]) -> Optional[UserRefSchema]:
    if ref is None:
        return None
    return UserRefSchema(id=str(ref.id), email=ref.email)
