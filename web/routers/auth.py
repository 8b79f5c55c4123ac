"""Authentication and tenant user management endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.api.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserListResponse,
    UserSchema,
)
from services import user_service
from services.auth.password import login_user
from services.entitlement_service import load_entitlement
from services.errors import NotesServiceError
from services.tenant_service import get_tenant
from services.user_service import Actor
from web.deps import get_current_actor, require_admin
from web.errors import service_error
from web.serializers import serialize_user, serialize_user_summary

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, session: Session = Depends(get_db)) -> LoginResponse:
    try:
        result = login_user(session, email=payload.email, password=payload.password)
        entitlement = load_entitlement(session, tenant=result.tenant, user=result.user)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return LoginResponse(
        accessToken=result.access_token,
        expiresIn=result.expires_in,
        user=serialize_user(result.user, tenant=result.tenant, entitlement=entitlement),
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> RegisterResponse:
    try:
        user = user_service.register_user(
            session,
            actor=actor,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return RegisterResponse(id=str(user.id), email=user.email, role=user.role, tenantId=str(user.tenant_id))


@router.get("/me", response_model=UserSchema)
def read_current_user(actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> UserSchema:
    try:
        user = user_service.load_user(session, actor.user_id, tenant_id=actor.tenant_id)
        tenant = get_tenant(session, actor.tenant_id)
        entitlement = load_entitlement(session, tenant=tenant, user=user)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return serialize_user(user, tenant=tenant, entitlement=entitlement)


@router.get("/users", response_model=UserListResponse)
def list_users(
    email: Optional[str] = Query(default=None, description="Exact email filter."),
    actor: Actor = Depends(require_admin),
    session: Session = Depends(get_db),
) -> UserListResponse:
    try:
        users = user_service.list_tenant_users(session, actor=actor, email=email)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return UserListResponse(items=[serialize_user_summary(user) for user in users])
