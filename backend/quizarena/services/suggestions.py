from __future__ import annotations

import logging
import math
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizarena.core.errors import NotFoundError, PersistenceError, ValidationError
from quizarena.core.security import is_admin
from quizarena.models.attempt import QuizAttempt
from quizarena.models.quiz import Quiz
from quizarena.models.suggestion import Suggestion, SuggestionStatus
from quizarena.models.user import User
from quizarena.services.access import get_visible_quiz

log = logging.getLogger(__name__)


def suggestion_out(s: Suggestion, quiz: Quiz | None) -> dict[str, Any]:
    return {
        "id": str(s.id),
        "quiz": {
            "id": str(s.quiz_id),
            "title": quiz.title if quiz else None,
            "subject": quiz.subject if quiz else None,
            "exam_year": quiz.exam_year if quiz else None,
        },
        "attempt_id": str(s.attempt_id) if s.attempt_id else None,
        "suggestion_text": s.suggestion_text,
        "status": s.status.value,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }


def _pagination(total: int, page: int, limit: int) -> dict[str, int]:
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total": int(total),
        "limit": limit,
    }


class SuggestionService:
    def __init__(self, db: Session):
        self.db = db

    def _get(self, suggestion_id: uuid.UUID) -> Suggestion:
        s = self.db.scalar(select(Suggestion).where(Suggestion.id == suggestion_id))
        if s is None:
            raise NotFoundError("suggestion not found")
        return s

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.exception("suggestion write failed")
            raise PersistenceError("could not save the suggestion, please retry") from e

    def submit(
        self,
        user: User,
        quiz_id: uuid.UUID,
        text: str,
        *,
        attempt_id: uuid.UUID | None = None,
    ) -> tuple[Suggestion, Quiz]:
        quiz = get_visible_quiz(self.db, quiz_id, include_inactive=is_admin(user))

        if attempt_id is not None:
            attempt = self.db.scalar(select(QuizAttempt).where(QuizAttempt.id == attempt_id))
            # Only the submitter's own attempt on this quiz can be referenced.
            if attempt is None or attempt.user_id != user.id or attempt.quiz_id != quiz.id:
                raise ValidationError("attempt does not belong to you and this quiz")

        s = Suggestion(
            user_id=user.id,
            quiz_id=quiz.id,
            attempt_id=attempt_id,
            suggestion_text=text.strip(),
            status=SuggestionStatus.pending,
        )
        self.db.add(s)
        self._flush()
        log.info("suggestion submitted id=%s user_id=%s quiz_id=%s", s.id, user.id, quiz.id)
        return s, quiz

    def list_for_user(self, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> dict[str, Any]:
        where = [Suggestion.user_id == user_id]
        total = self.db.scalar(select(func.count(Suggestion.id)).where(*where)) or 0
        rows = self.db.execute(
            select(Suggestion, Quiz)
            .outerjoin(Quiz, Quiz.id == Suggestion.quiz_id)
            .where(*where)
            .order_by(Suggestion.created_at.desc(), Suggestion.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return {
            "suggestions": [suggestion_out(s, q) for s, q in rows],
            "pagination": _pagination(total, page, limit),
        }

    def list_all(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        status: SuggestionStatus | None = None,
    ) -> dict[str, Any]:
        where = [] if status is None else [Suggestion.status == status]
        total = self.db.scalar(select(func.count(Suggestion.id)).where(*where)) or 0
        rows = self.db.execute(
            select(Suggestion, Quiz, User.email)
            .outerjoin(Quiz, Quiz.id == Suggestion.quiz_id)
            .outerjoin(User, User.id == Suggestion.user_id)
            .where(*where)
            .order_by(Suggestion.created_at.desc(), Suggestion.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        items = []
        for s, q, email in rows:
            out = suggestion_out(s, q)
            out["user_id"] = str(s.user_id)
            out["user_email"] = email
            items.append(out)
        return {"suggestions": items, "pagination": _pagination(total, page, limit)}

    def update_status(self, suggestion_id: uuid.UUID, status: SuggestionStatus) -> tuple[Suggestion, SuggestionStatus]:
        """Returns the updated suggestion and its previous status."""
        s = self._get(suggestion_id)
        previous = s.status
        s.status = status
        self._flush()
        return s, previous

    def delete(self, suggestion_id: uuid.UUID) -> Suggestion:
        s = self._get(suggestion_id)
        self.db.delete(s)
        self._flush()
        return s

    def quiz_for(self, s: Suggestion) -> Quiz | None:
        return self.db.scalar(select(Quiz).where(Quiz.id == s.quiz_id))
