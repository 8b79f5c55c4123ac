"""Tenant-scoped note persistence. Creation is delegated to the access gate."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from models.note import Note
from models.user import User
from services.access_gate import create_note_with_gate, validate_note_fields
from services.errors import InternalError, NotFoundError
from services.user_service import Actor

logger = get_logger(__name__)


@dataclass(frozen=True)
class NoteRecord:
    id: uuid.UUID
    tenant_id: uuid.UUID
    created_by: Optional[uuid.UUID]
    author_email: Optional[str]
    title: str
    content: str
    created_at: datetime
    updated_at: datetime


def _to_record(note: Note, author_email: Optional[str]) -> NoteRecord:
    return NoteRecord(
        id=note.id,
        tenant_id=note.tenant_id,
        created_by=note.created_by,
        author_email=author_email,
        title=note.title,
        content=note.content,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


def _author_email(session: Session, note: Note) -> Optional[str]:
    if note.created_by is None:
        return None
    author = session.get(User, note.created_by)
    return author.email if author else None


def _get_scoped(session: Session, actor: Actor, note_id: uuid.UUID) -> Note:
    note = session.execute(
        select(Note).where(Note.id == note_id, Note.tenant_id == actor.tenant_id)
    ).scalar_one_or_none()
    if note is None:
        raise NotFoundError("Note not found.", code="note.not_found")
    return note


def list_notes(session: Session, *, actor: Actor) -> List[NoteRecord]:
    rows = session.execute(
        select(Note, User.email)
        .outerjoin(User, User.id == Note.created_by)
        .where(Note.tenant_id == actor.tenant_id)
        .order_by(Note.created_at.desc(), Note.id)
    ).all()
    return [_to_record(note, email) for note, email in rows]


def get_note(session: Session, *, actor: Actor, note_id: uuid.UUID) -> NoteRecord:
    note = _get_scoped(session, actor, note_id)
    return _to_record(note, _author_email(session, note))


def create_note(session: Session, *, actor: Actor, title: Optional[str], content: Optional[str]) -> NoteRecord:
    note = create_note_with_gate(session, actor=actor, title=title, content=content)
    return _to_record(note, _author_email(session, note))


def update_note(
    session: Session,
    *,
    actor: Actor,
    note_id: uuid.UUID,
    title: Optional[str],
    content: Optional[str],
) -> NoteRecord:
    cleaned_title, cleaned_content = validate_note_fields(title, content)
    note = _get_scoped(session, actor, note_id)
    note.title = cleaned_title
    note.content = cleaned_content
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to update note=%s", note_id)
        raise InternalError("Failed to update note.") from exc
    session.refresh(note)
    return _to_record(note, _author_email(session, note))


def delete_note(session: Session, *, actor: Actor, note_id: uuid.UUID) -> None:
    note = _get_scoped(session, actor, note_id)
    session.delete(note)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to delete note=%s", note_id)
        raise InternalError("Failed to delete note.") from exc


__all__ = ["NoteRecord", "create_note", "delete_note", "get_note", "list_notes", "update_note"]
