"""Demo workspace seeding for local development."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.plan_constants import PlanTier, UpgradeStatus, UserRoleKey
from models.note import Note
from models.tenant import Tenant
from models.user import User
from services.auth.hashing import hash_password
from services.errors import InternalError

logger = get_logger(__name__)

DEMO_PASSWORD = "password"


@dataclass(frozen=True)
class DemoTenant:
    name: str
    slug: str
    notes: Sequence[Dict[str, str]]


DEMO_TENANTS: Sequence[DemoTenant] = (
    DemoTenant(
        name="Acme Corporation",
        slug="acme",
        notes=(
            {
                "author": "admin",
                "title": "Welcome to Acme Notes",
                "content": "This is your first note in the Acme Corporation workspace. You can create, edit, and manage your notes here.",
            },
            {
                "author": "user",
                "title": "Project Planning",
                "content": "Meeting notes from the project planning session. Key deliverables and timelines discussed.",
            },
        ),
    ),
    DemoTenant(
        name="Globex Corporation",
        slug="globex",
        notes=(
            {
                "author": "admin",
                "title": "Globex Team Meeting",
                "content": "Weekly team standup notes. Discussed progress on current initiatives and upcoming priorities.",
            },
            {
                "author": "user",
                "title": "Client Feedback",
                "content": "Important feedback from our key client. Need to address concerns about delivery timeline.",
            },
        ),
    ),
)


def seed_demo_data(session: Session, *, reset: bool = False) -> List[str]:
    """Create the demo tenants, one admin and one member each, and sample notes.

    Existing demo tenants are left untouched unless ``reset`` is set, in which
    case every tenant, user and note is deleted first. Returns the seeded
    account emails.
    """

    try:
        if reset:
            session.query(Note).delete()
            session.query(Tenant).update({Tenant.upgrade_requested_by: None, Tenant.upgrade_reviewed_by: None})
            session.query(User).delete()
            session.query(Tenant).delete()
            session.flush()

        password_hash = hash_password(DEMO_PASSWORD)
        emails: List[str] = []
        for demo in DEMO_TENANTS:
            existing = session.execute(select(Tenant).where(Tenant.slug == demo.slug)).scalar_one_or_none()
            if existing is not None:
                logger.info("seed.tenant_exists", extra={"slug": demo.slug})
                continue

            tenant = Tenant(
                name=demo.name,
                slug=demo.slug,
                plan=PlanTier.FREE.value,
                upgrade_status=UpgradeStatus.NONE.value,
            )
            session.add(tenant)
            session.flush()

            accounts = {
                "admin": User(
                    tenant_id=tenant.id,
                    email=f"admin@{demo.slug}.test",
                    password_hash=password_hash,
                    role=UserRoleKey.ADMIN.value,
                    is_pro=True,
                ),
                "user": User(
                    tenant_id=tenant.id,
                    email=f"user@{demo.slug}.test",
                    password_hash=password_hash,
                    role=UserRoleKey.MEMBER.value,
                    is_pro=False,
                ),
            }
            session.add_all(accounts.values())
            session.flush()

            for note in demo.notes:
                session.add(
                    Note(
                        tenant_id=tenant.id,
                        created_by=accounts[note["author"]].id,
                        title=note["title"],
                        content=note["content"],
                    )
                )
            emails.extend(account.email for account in accounts.values())

        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Demo seeding failed.")
        raise InternalError("Failed to seed demo data.") from exc

    logger.info("seed.completed", extra={"accounts": len(emails)})
    return emails


__all__ = ["DEMO_PASSWORD", "DEMO_TENANTS", "seed_demo_data"]
