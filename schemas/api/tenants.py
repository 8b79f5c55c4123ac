"""Schemas for tenant administration and per-user Pro management."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from schemas.api.auth import TenantSchema


class TenantUpgradeResponse(TenantSchema):
    pass


class UserProRevokeRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why Pro access is being withdrawn (required).")


class UserProResponse(BaseModel):
    userId: str
    isPro: bool
    cancellationReason: Optional[str] = None
    cancelledAt: Optional[str] = None
