"""
Mapping of Supabase/PostgREST failures onto HTTP errors.
"""

import logging
from fastapi import HTTPException

logger = logging.getLogger(__name__)

# Postgres error codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"


def database_error(exc: Exception, label: str = "DatabaseError") -> HTTPException:
    """Turn a database exception into an HTTPException carrying the underlying message."""
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    logger.error("[%s] code=%s message=%s details=%s hint=%s",
                 label, code, message, getattr(exc, "details", None), getattr(exc, "hint", None))
    if code == UNIQUE_VIOLATION:
        return HTTPException(status_code=409, detail="This record already exists")
    if code in (FOREIGN_KEY_VIOLATION, CHECK_VIOLATION):
        return HTTPException(status_code=400, detail=message)
    return HTTPException(status_code=500, detail=message)
