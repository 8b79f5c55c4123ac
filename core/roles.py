"""Closed role set for tenant users.

Each role is a small capability object. Services ask the role what it may do
instead of comparing role strings inline, so adding a capability means
touching exactly the two classes below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from core.plan_constants import UserRoleKey


@dataclass(frozen=True)
class Role:
    key: UserRoleKey
    # Admins bypass every note ceiling.
    always_entitled: bool
    # Only admins review upgrade requests and manage other users' Pro flag.
    can_manage_entitlements: bool
    # Members ask for Pro through the request workflow.
    can_request_upgrade: bool
    # Admins keep Pro permanently.
    pro_revocable: bool

    @property
    def value(self) -> str:
        return self.key.value

    @property
    def is_admin(self) -> bool:
        return self.can_manage_entitlements


ADMIN = Role(
    key=UserRoleKey.ADMIN,
    always_entitled=True,
    can_manage_entitlements=True,
    can_request_upgrade=False,
    pro_revocable=False,
)
MEMBER = Role(
    key=UserRoleKey.MEMBER,
    always_entitled=False,
    can_manage_entitlements=False,
    can_request_upgrade=True,
    pro_revocable=True,
)

_ROLES: Dict[str, Role] = {ADMIN.value: ADMIN, MEMBER.value: MEMBER}


class UnknownRoleError(ValueError):
    """Raised when a stored or requested role is outside the supported set."""


def role_for(value: object) -> Role:
    """Resolve a stored role key into its capability object."""

    if isinstance(value, Role):
        return value
    if isinstance(value, UserRoleKey):
        value = value.value
    normalized = str(value or "").strip().lower()
    role = _ROLES.get(normalized)
    if role is None:
        raise UnknownRoleError(f"Unknown role '{value}'. Expected one of: {', '.join(sorted(_ROLES))}")
    return role


__all__ = ["ADMIN", "MEMBER", "Role", "UnknownRoleError", "role_for"]
