"""Translate service errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from core.logging import get_logger
from services.errors import InternalError, NotesServiceError

logger = get_logger(__name__)


def service_error(exc: NotesServiceError) -> HTTPException:
    if isinstance(exc, InternalError):
        logger.error("Internal service error (%s): %s", exc.code, exc.message)
        return HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": "Internal server error."})
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


__all__ = ["service_error"]
