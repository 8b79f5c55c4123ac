"""Tenant administration: plan upgrade, invite info and per-user Pro."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas.api.auth import TenantSchema
from schemas.api.tenants import TenantUpgradeResponse, UserProResponse, UserProRevokeRequest
from services import tenant_service, upgrade_service
from services.errors import NotesServiceError
from services.upgrade_service import UserProResult
from services.user_service import Actor
from web.deps import require_admin
from web.errors import service_error
from web.serializers import iso, serialize_tenant

router = APIRouter(prefix="/tenants", tags=["Tenants"])


def _serialize_pro(result: UserProResult) -> UserProResponse:
    return UserProResponse(
        userId=str(result.user_id),
        isPro=result.is_pro,
        cancellationReason=result.cancellation_reason,
        cancelledAt=iso(result.cancelled_at),
    )


def _tenant_id_for_slug(session: Session, actor: Actor, slug: str) -> uuid.UUID:
    tenant = tenant_service.get_tenant_summary(session, actor=actor, slug=slug)
    return tenant.id


@router.post("/{slug}/upgrade", response_model=TenantUpgradeResponse)
def upgrade_tenant(slug: str, actor: Actor = Depends(require_admin), session: Session = Depends(get_db)) -> TenantUpgradeResponse:
    try:
        tenant = tenant_service.upgrade_tenant_plan(session, actor=actor, slug=slug)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return TenantUpgradeResponse(**serialize_tenant(tenant).model_dump())


@router.get("/{slug}/invite", response_model=TenantSchema)
def read_tenant_invite_info(slug: str, actor: Actor = Depends(require_admin), session: Session = Depends(get_db)) -> TenantSchema:
    try:
        tenant = tenant_service.get_tenant_summary(session, actor=actor, slug=slug)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return serialize_tenant(tenant)


@router.post("/{slug}/users/{user_id}/pro", response_model=UserProResponse)
def grant_user_pro(
    slug: str,
    user_id: uuid.UUID,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> UserProResponse:
    try:
        tenant_id = _tenant_id_for_slug(session, actor, slug)
        result = upgrade_service.grant_user_pro(session, actor=actor, tenant_id=tenant_id, target_user_id=user_id)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_pro(result)


@router.delete("/{slug}/users/{user_id}/pro", response_model=UserProResponse)
def revoke_user_pro(
    slug: str,
    user_id: uuid.UUID,
    payload: Optional[UserProRevokeRequest] = None,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> UserProResponse:
    try:
        tenant_id = _tenant_id_for_slug(session, actor, slug)
        result = upgrade_service.revoke_user_pro(
            session,
            actor=actor,
            tenant_id=tenant_id,
            target_user_id=user_id,
            reason=payload.reason if payload else None,
        )
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_pro(result)
