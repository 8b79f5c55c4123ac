"""Tenant-scoped note CRUD. Creation passes through the access gate."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.api.auth import EntitlementSchema
from schemas.api.notes import NoteAuthorSchema, NoteListResponse, NoteResponse, NoteWriteRequest
from services import note_service
from services.entitlement_service import load_entitlement
from services.errors import NotesServiceError
from services.note_service import NoteRecord
from services.tenant_service import get_tenant
from services.user_service import Actor, load_actor_user
from web.deps import get_current_actor
from web.errors import service_error
from web.serializers import iso, serialize_entitlement

router = APIRouter(prefix="/notes", tags=["Notes"])


def _serialize_note(record: NoteRecord) -> NoteResponse:
    return NoteResponse(
        id=str(record.id),
        tenantId=str(record.tenant_id),
        createdBy=NoteAuthorSchema(
            id=str(record.created_by) if record.created_by else None,
            email=record.author_email,
        ),
        title=record.title,
        content=record.content,
        createdAt=iso(record.created_at),
        updatedAt=iso(record.updated_at),
    )


@router.get("", response_model=NoteListResponse)
def list_notes(actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> NoteListResponse:
    records = note_service.list_notes(session, actor=actor)
    return NoteListResponse(items=[_serialize_note(record) for record in records], count=len(records))


@router.get("/entitlement", response_model=EntitlementSchema)
def read_entitlement(actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> EntitlementSchema:
    try:
        user = load_actor_user(session, actor)
        tenant = get_tenant(session, actor.tenant_id)
        decision = load_entitlement(session, tenant=tenant, user=user)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return serialize_entitlement(decision)


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_note(
    payload: NoteWriteRequest,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_db),
) -> NoteResponse:
    try:
        record = note_service.create_note(session, actor=actor, title=payload.title, content=payload.content)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_note(record)


@router.get("/{note_id}", response_model=NoteResponse)
def get_note(note_id: uuid.UUID, actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> NoteResponse:
    try:
        record = note_service.get_note(session, actor=actor, note_id=note_id)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_note(record)


@router.put("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: uuid.UUID,
    payload: NoteWriteRequest,
    actor: Actor = Depends(get_current_actor),
    session: Session = Depends(get_db),
) -> NoteResponse:
    try:
        record = note_service.update_note(
            session,
            actor=actor,
            note_id=note_id,
            title=payload.title,
            content=payload.content,
        )
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return _serialize_note(record)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(note_id: uuid.UUID, actor: Actor = Depends(get_current_actor), session: Session = Depends(get_db)) -> Response:
    try:
        note_service.delete_note(session, actor=actor, note_id=note_id)
    except NotesServiceError as exc:
        raise service_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
