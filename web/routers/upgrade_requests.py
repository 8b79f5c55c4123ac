"""Upgrade request workflow endpoints."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas.api.upgrades import (
    PendingRequestListResponse,
    PendingRequestSchema,
    UpgradeReasonRequest,
    UpgradeReviewResponse,
    UpgradeStatusResponse,
)
from services import upgrade_service
from services.errors import NotesServiceError
from services.upgrade_service import UpgradeReviewResult, UpgradeStatusView
from services.user_service import Actor
from web.deps import get_current_actor, require_admin
from web.errors import service_error
from web.serializers import iso, serialize_user_ref

router = APIRouter(prefix="/upgrade-requests", tags=["Upgrade Requests"])


def _serialize_status(view: UpgradeStatusView) -> UpgradeStatusResponse:
    return UpgradeStatusResponse(
        tenantId=str(view.tenant_id),
        status=view.status,
        effectiveStatus=view.effective_status,
        requestedBy=serialize_user_ref(view.requested_by),
        requestedAt=iso(view.requested_at),
        reviewedBy=serialize_user_ref(view.reviewed_by),
        reviewedAt=iso(view.reviewed_at),
        reason=view.reason,
    )


def _serialize_review(result: UpgradeReviewResult) -> UpgradeReviewResponse:
    return UpgradeReviewResponse(
        tenantId=str(result.tenant_id),
        tenantName=result.tenant_name,
        status=result.status,
        reviewedAt=iso(result.reviewed_at),
        reason=result.reason,
        user=serialize_user_ref(result.user),
        userIsPro=result.user_is_pro,
        changed=result.changed,
    )


@router.post("", response_model=UpgradeStatusResponse)
def submit_upgrade_request(
    payload: Optional[UpgradeReasonRequest] = None,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_db),
) -> UpgradeStatusResponse:
    try:
        view = upgrade_service.request_upgrade(session, actor=actor, tenant_id=actor.tenant_id, reason=payload.reason if payload else None)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_status(view)


@router.get("", response_model=UpgradeStatusResponse)
def read_upgrade_status(actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> UpgradeStatusResponse:
    try:
        view = upgrade_service.get_upgrade_status(session, tenant_id=actor.tenant_id, viewer=actor)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_status(view)


@router.get("/pending", response_model=PendingRequestListResponse)
def list_pending_requests(actor: Actor = Depends(require_admin), session: Session = Depends(get_db)) -> PendingRequestListResponse:
    try:
        pending = upgrade_service.list_pending_requests(session, actor=actor)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return PendingRequestListResponse(
        items=[
            PendingRequestSchema(
                tenantId=str(item.tenant_id),
                name=item.tenant_name,
                slug=item.tenant_slug,
                requestedBy=serialize_user_ref(item.requested_by),
                requestedAt=iso(item.requested_at),
                reason=item.reason,
                createdAt=iso(item.tenant_created_at),
            )
            for item in pending
        ]
    )


@router.post("/{tenant_id}/approve", response_model=UpgradeReviewResponse)
def approve_upgrade_request(
    tenant_id: uuid.UUID,
    payload: Optional[UpgradeReasonRequest] = None,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> UpgradeReviewResponse:
    try:
        result = upgrade_service.approve_upgrade(session, actor=actor, tenant_id=tenant_id, reason=payload.reason if payload else None)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_review(result)


@router.post("/{tenant_id}/reject", response_model=UpgradeReviewResponse)
def reject_upgrade_request(
    tenant_id: uuid.UUID,
    payload: Optional[UpgradeReasonRequest] = None,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> UpgradeReviewResponse:
    try:
        result = upgrade_service.reject_upgrade(session, actor=actor, tenant_id=tenant_id, reason=payload.reason if payload else None)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_review(result)
