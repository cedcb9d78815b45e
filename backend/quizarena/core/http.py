from __future__ import annotations

import uuid

from fastapi import HTTPException, Request


def parse_uuid(value: str, *, field: str) -> uuid.UUID:
    """Path and query ids; a malformed id is a 400, not a 404."""
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


def request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    rid = str(rid or "").strip()
    return rid or None
