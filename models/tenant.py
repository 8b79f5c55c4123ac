"""SQLAlchemy model for tenants and their single-slot upgrade request."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from core.plan_constants import PlanTier, UpgradeStatus, note_limit_for_plan
from database import Base


class Tenant(Base):
    """Isolated customer workspace owning a plan and one upgrade request."""

    __tablename__ = "tenants"
    __table_args__ = {"extend_existing": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(160), nullable=False)
    slug = Column(String(160), unique=True, nullable=False, index=True)
    plan = Column(String(16), nullable=False, default=PlanTier.FREE.value)

    # Upgrade request sub-state. Only services.upgrade_service writes these.
    upgrade_status = Column(String(16), nullable=False, default=UpgradeStatus.NONE.value, index=True)
    upgrade_requested_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL", use_alter=True), nullable=True)
    upgrade_requested_at = Column(DateTime(timezone=True), nullable=True)
    upgrade_reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL", use_alter=True), nullable=True)
    upgrade_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    upgrade_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def note_limit(self) -> int:
        return note_limit_for_plan(self.plan)

    @property
    def is_pro(self) -> bool:
        return self.plan == PlanTier.PRO.value


__all__ = ["Tenant"]
