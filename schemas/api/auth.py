"""Schemas for login, registration and the current-user payload."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

UserRole = Literal["admin", "member"]


class LoginRequest(BaseModel):
    email: str = Field(..., description="Account email address.")
    password: str = Field(..., description="Account password.")

    @field_validator("email", mode="before")
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip().lower()


class RegisterRequest(BaseModel):
    email: str
    password: str
    role: UserRole = Field(default="member", description="Role inside the admin's tenant.")

    @field_validator("email", mode="before")
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip().lower()


class TenantSchema(BaseModel):
    id: str
    name: str
    slug: str
    plan: Literal["free", "pro"]
    noteLimit: int = Field(..., description="-1 when the tenant has no note ceiling.")


class EntitlementSchema(BaseModel):
    canCreateNote: bool
    canRequestUpgrade: bool
    effectiveStatus: str
    noteLimit: int
    noteCount: int
    remaining: Optional[int] = Field(default=None, description="Notes left before the ceiling. Null means unlimited.")


class UserSchema(BaseModel):
    id: str
    email: str
    role: UserRole
    isPro: bool
    proCancellationReason: Optional[str] = None
    proCancelledAt: Optional[str] = None
    tenant: Optional[TenantSchema] = None
    entitlement: Optional[EntitlementSchema] = None


class UserSummarySchema(BaseModel):
    id: str
    email: str
    role: UserRole
    isPro: bool


class LoginResponse(BaseModel):
    accessToken: str
    tokenType: Literal["bearer"] = "bearer"
    expiresIn: int
    user: UserSchema


class RegisterResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    tenantId: str


class UserListResponse(BaseModel):
    items: List[UserSummarySchema]
