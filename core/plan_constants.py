"""Shared plan, role and upgrade-status constants used across services and routers."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from core.env import env_int


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class UserRoleKey(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


class UpgradeStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


SUPPORTED_PLAN_TIERS: Sequence[PlanTier] = tuple(PlanTier)

# -1 is the wire value for "no ceiling".
UNLIMITED_NOTES = -1
FREE_PLAN_NOTE_LIMIT = env_int("NOTES_FREE_PLAN_LIMIT", 3, minimum=1)

DEFAULT_UPGRADE_REASON = "Requesting upgrade to Pro plan for unlimited notes"


def note_limit_for_plan(plan: str) -> int:
    """Return the tenant-wide note ceiling for ``plan``."""

    return UNLIMITED_NOTES if plan == PlanTier.PRO.value else FREE_PLAN_NOTE_LIMIT


__all__ = [
    "DEFAULT_UPGRADE_REASON",
    "FREE_PLAN_NOTE_LIMIT",
    "PlanTier",
    "SUPPORTED_PLAN_TIERS",
    "UNLIMITED_NOTES",
    "UpgradeStatus",
    "UserRoleKey",
    "note_limit_for_plan",
]
