"""Entitlement evaluation for note creation and upgrade eligibility.

``evaluate_entitlement`` is a pure function over snapshots of the tenant and
the user. Callers must build the snapshots from freshly loaded rows for
every request; nothing here caches across calls.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.plan_constants import UNLIMITED_NOTES, PlanTier, UpgradeStatus, note_limit_for_plan
from core.roles import Role, role_for
from models.note import Note
from models.tenant import Tenant
from models.user import User

logger = get_logger(__name__)

REASON_ADMIN = "admin"
REASON_TENANT_PRO = "tenant_pro"
REASON_USER_PRO = "user_pro"
REASON_FREE_QUOTA = "free_quota"
REASON_LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class TenantSnapshot:
    id: uuid.UUID
    plan: str
    upgrade_status: str

    @property
    def is_pro(self) -> bool:
        return self.plan == PlanTier.PRO.value

    @property
    def note_limit(self) -> int:
        return note_limit_for_plan(self.plan)

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantSnapshot":
        return cls(
            id=tenant.id,
            plan=tenant.plan or PlanTier.FREE.value,
            upgrade_status=tenant.upgrade_status or UpgradeStatus.NONE.value,
        )


@dataclass(frozen=True)
class UserSnapshot:
    id: uuid.UUID
    tenant_id: uuid.UUID
    role: Role
    is_pro: bool

    @classmethod
    def from_model(cls, user: User) -> "UserSnapshot":
        return cls(
            id=user.id,
            tenant_id=user.tenant_id,
            role=role_for(user.role),
            is_pro=bool(user.is_pro),
        )


@dataclass(frozen=True)
class EntitlementDecision:
    can_create_note: bool
    can_request_upgrade: bool
    effective_status: str
    note_limit: int
    note_count: int
    reason: str

    @property
    def remaining(self) -> Optional[int]:
        """Notes left before the ceiling. ``None`` when no ceiling applies."""
        if self.reason in (REASON_ADMIN, REASON_TENANT_PRO, REASON_USER_PRO):
            return None
        return max(self.note_limit - self.note_count, 0)


def can_request_upgrade(tenant: TenantSnapshot, user: UserSnapshot) -> bool:
    """Members of a free tenant without Pro and with no pending request may ask."""

    if not user.role.can_request_upgrade:
        return False
    if tenant.is_pro or user.is_pro:
        return False
    return tenant.upgrade_status != UpgradeStatus.PENDING.value


def resolve_effective_status(tenant: TenantSnapshot, user: UserSnapshot) -> str:
    """Status to display for ``user``.

    A stored ``approved`` may be left over from a cycle whose grant was later
    revoked; it only counts while the tenant or the user is actually Pro.
    """

    stored = tenant.upgrade_status or UpgradeStatus.NONE.value
    if stored == UpgradeStatus.APPROVED.value and not (tenant.is_pro or user.is_pro):
        return UpgradeStatus.NONE.value
    return stored


def evaluate_entitlement(tenant: TenantSnapshot, user: UserSnapshot, *, note_count: int) -> EntitlementDecision:
    """Decide whether ``user`` may create another note right now.

    Rules are checked in order and the first match wins: admin role, tenant
    plan pro, user Pro flag, then the free ceiling against the tenant's
    current note count.
    """

    if user.role.always_entitled:
        allowed, reason, limit = True, REASON_ADMIN, UNLIMITED_NOTES
    elif tenant.is_pro:
        allowed, reason, limit = True, REASON_TENANT_PRO, UNLIMITED_NOTES
    elif user.is_pro:
        allowed, reason, limit = True, REASON_USER_PRO, UNLIMITED_NOTES
    else:
        limit = tenant.note_limit
        allowed = note_count < limit
        reason = REASON_FREE_QUOTA if allowed else REASON_LIMIT_REACHED

    return EntitlementDecision(
        can_create_note=allowed,
        can_request_upgrade=can_request_upgrade(tenant, user),
        effective_status=resolve_effective_status(tenant, user),
        note_limit=limit,
        note_count=max(int(note_count), 0),
        reason=reason,
    )


def count_tenant_notes(session: Session, tenant_id: uuid.UUID) -> int:
    result = session.execute(select(func.count(Note.id)).where(Note.tenant_id == tenant_id))
    return int(result.scalar() or 0)


def load_entitlement(session: Session, *, tenant: Tenant, user: User) -> EntitlementDecision:
    """Evaluate against freshly loaded rows plus a live note count."""

    note_count = count_tenant_notes(session, tenant.id)
    decision = evaluate_entitlement(
        TenantSnapshot.from_model(tenant),
        UserSnapshot.from_model(user),
        note_count=note_count,
    )
    logger.debug(
        "entitlement.evaluated tenant=%s user=%s allowed=%s reason=%s count=%d",
        tenant.id,
        user.id,
        decision.can_create_note,
        decision.reason,
        decision.note_count,
    )
    return decision


__all__ = [
    "EntitlementDecision",
    "TenantSnapshot",
    "UserSnapshot",
    "can_request_upgrade",
    "count_tenant_notes",
    "evaluate_entitlement",
    "load_entitlement",
    "resolve_effective_status",
]
