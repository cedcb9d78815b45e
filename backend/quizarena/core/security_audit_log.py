from __future__ import annotations

import json

from fastapi import Request
from sqlalchemy.orm import Session

from quizarena.core.http import request_id as current_request_id
from quizarena.core.rate_limit import _client_ip
from quizarena.models.security_audit import SecurityAuditEvent


def audit_log(
    *,
    db: Session,
    request: Request,
    event_type: str,
    actor_user_id=None,
    target_user_id=None,
    quiz_id=None,
    meta: dict | str | None = None,
) -> None:
    """Stage an audit event on ``db``; the caller's commit persists it."""
    if isinstance(meta, dict):
        meta_str = json.dumps(meta, ensure_ascii=False, default=str)
    elif isinstance(meta, str):
        meta_str = meta
    else:
        meta_str = None

    ip = _client_ip(request)
    db.add(
        SecurityAuditEvent(
            actor_user_id=actor_user_id,
            target_user_id=target_user_id,
            quiz_id=quiz_id,
            event_type=str(event_type),
            meta=meta_str,
            request_id=current_request_id(request),
            ip=None if ip == "unknown" else ip,
        )
    )
