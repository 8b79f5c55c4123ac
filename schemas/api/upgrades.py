"""Schemas for the upgrade request workflow."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

UpgradeStatus = Literal["none", "pending", "approved", "rejected"]


class UpgradeReasonRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Optional free-text reason.")


class UserRefSchema(BaseModel):
    id: str
    email: Optional[str] = None


class UpgradeStatusResponse(BaseModel):
    tenantId: str
    status: UpgradeStatus
    effectiveStatus: Optional[UpgradeStatus] = Field(
        default=None,
        description="Status to display for the caller; a stale approval shows as 'none'.",
    )
    requestedBy: Optional[UserRefSchema] = None
    requestedAt: Optional[str] = None
    reviewedBy: Optional[UserRefSchema] = None
    reviewedAt: Optional[str] = None
    reason: Optional[str] = None


class PendingRequestSchema(BaseModel):
    tenantId: str
    name: str
    slug: str
    requestedBy: Optional[UserRefSchema] = None
    requestedAt: Optional[str] = None
    reason: Optional[str] = None
    createdAt: Optional[str] = None


class PendingRequestListResponse(BaseModel):
    items: List[PendingRequestSchema]


class UpgradeReviewResponse(BaseModel):
    tenantId: str
    tenantName: str
    status: UpgradeStatus
    reviewedAt: Optional[str] = None
    reason: Optional[str] = None
    user: Optional[UserRefSchema] = None
    userIsPro: Optional[bool] = None
    changed: bool = True
