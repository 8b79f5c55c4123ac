"""Note-creation gate enforcing the free-plan ceiling at write time."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from models.note import Note
from models.tenant import Tenant
from services.entitlement_service import (
    REASON_FREE_QUOTA,
    EntitlementDecision,
    TenantSnapshot,
    UserSnapshot,
    count_tenant_notes,
    evaluate_entitlement,
)
from services.errors import InternalError, LimitReachedError, NotFoundError, ValidationError
from services.user_service import Actor, load_actor_user

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 20000


def _clean_text(value: Optional[str]) -> str:
    return (value or "").strip()


def validate_note_fields(title: Optional[str], content: Optional[str]) -> tuple[str, str]:
    cleaned_title = _clean_text(title)
    cleaned_content = _clean_text(content)
    if not cleaned_title or not cleaned_content:
        raise ValidationError("Title and content are required.", code="note.validation_failed")
    if len(cleaned_title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters.", code="note.validation_failed")
    if len(cleaned_content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Content must be at most {MAX_CONTENT_LENGTH} characters.", code="note.validation_failed")
    return cleaned_title, cleaned_content


def _limit_error(decision: EntitlementDecision, current: int) -> LimitReachedError:
    return LimitReachedError(
        "Note limit reached. Request upgrade to Pro for unlimited notes.",
        extra={
            "limit": decision.note_limit,
            "current": current,
            "canRequestUpgrade": decision.can_request_upgrade,
        },
    )


def create_note_with_gate(session: Session, *, actor: Actor, title: Optional[str], content: Optional[str]) -> Note:
    """Insert a note only if the actor is entitled to one more.

    The tenant row is locked for the duration of the check-and-insert so
    concurrent creators in the same tenant are serialised, and the count is
    checked again after the insert before committing.
    """

    cleaned_title, cleaned_content = validate_note_fields(title, content)
    user = load_actor_user(session, actor)

    try:
        tenant = session.execute(
            select(Tenant).where(Tenant.id == actor.tenant_id).with_for_update()
        ).scalar_one_or_none()
        if tenant is None:
            raise NotFoundError("Tenant not found.", code="tenant.not_found")

        decision = evaluate_entitlement(
            TenantSnapshot.from_model(tenant),
            UserSnapshot.from_model(user),
            note_count=count_tenant_notes(session, tenant.id),
        )
        if not decision.can_create_note:
            session.rollback()
            logger.info(
                "note.limit_blocked",
                extra={"tenantId": str(actor.tenant_id), "userId": str(actor.user_id), "count": decision.note_count},
            )
            raise _limit_error(decision, decision.note_count)

        note = Note(tenant_id=tenant.id, created_by=user.id, title=cleaned_title, content=cleaned_content)
        session.add(note)
        session.flush()

        if decision.reason == REASON_FREE_QUOTA:
            after = count_tenant_notes(session, tenant.id)
            if after > decision.note_limit:
                session.rollback()
                logger.warning("note.limit_overflow_rolled_back", extra={"tenantId": str(actor.tenant_id), "count": after})
                raise _limit_error(decision, after - 1)

        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to create note for tenant=%s", actor.tenant_id)
        raise InternalError("Failed to create note.") from exc

    logger.info("note.created", extra={"tenantId": str(actor.tenant_id), "userId": str(actor.user_id), "noteId": str(note.id)})
    return note


__all__ = ["create_note_with_gate", "validate_note_fields"]
