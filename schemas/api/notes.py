"""Schemas for the notes API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class NoteWriteRequest(BaseModel):
    title: Optional[str] = Field(default=None, description="Note title (required).")
    content: Optional[str] = Field(default=None, description="Note body (required).")


class NoteAuthorSchema(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None


class NoteResponse(BaseModel):
    id: str
    tenantId: str
    createdBy: NoteAuthorSchema
    title: str
    content: str
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class NoteListResponse(BaseModel):
    items: List[NoteResponse]
    count: int
