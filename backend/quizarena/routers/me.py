from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizarena.core.http import parse_uuid
from quizarena.core.security import get_current_user
from quizarena.db.session import get_db
from quizarena.models.user import User
from quizarena.schemas.me import AttemptDetailResponse, AttemptHistoryResponse, UserStatsResponse
from quizarena.services.attempts import AttemptQueries

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/attempts", response_model=AttemptHistoryResponse)
def my_attempts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    quiz_id: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    qid = parse_uuid(quiz_id, field="quiz id") if quiz_id else None
    return AttemptQueries(db).history(user.id, page=page, limit=limit, quiz_id=qid)


@router.get("/stats", response_model=UserStatsResponse)
def my_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return AttemptQueries(db).stats(user.id)


@router.get("/attempts/{attempt_id}", response_model=AttemptDetailResponse)
def my_attempt_detail(
    attempt_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return AttemptQueries(db).detail(parse_uuid(attempt_id, field="attempt id"), user)
