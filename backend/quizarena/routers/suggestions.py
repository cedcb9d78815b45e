from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizarena.core.http import parse_uuid
from quizarena.core.rate_limit import general_rate_limit
from quizarena.core.security import get_current_user
from quizarena.db.session import get_db
from quizarena.models.user import User
from quizarena.schemas.suggestion import SuggestionCreateRequest, SuggestionListResponse, SuggestionOut
from quizarena.services.suggestions import SuggestionService, suggestion_out

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@router.post("", response_model=SuggestionOut, status_code=201)
def submit_suggestion(
    body: SuggestionCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = general_rate_limit("suggestion_submit"),
):
    qid = parse_uuid(body.quiz_id, field="quiz id")
    aid = parse_uuid(body.attempt_id, field="attempt id") if body.attempt_id else None

    suggestion, quiz = SuggestionService(db).submit(user, qid, body.suggestion_text, attempt_id=aid)
    db.commit()
    db.refresh(suggestion)
    return suggestion_out(suggestion, quiz)


@router.get("/mine", response_model=SuggestionListResponse)
def my_suggestions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = general_rate_limit("suggestion_mine"),
):
    return SuggestionService(db).list_for_user(user.id, page=page, limit=limit)
