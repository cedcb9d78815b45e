from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizarena.core.errors import AuthorizationError, NotFoundError, PersistenceError
from quizarena.models.attempt import QuizAttempt
from quizarena.models.quiz import Quiz
from quizarena.models.user import User, UserRole
from quizarena.services.grading import GradeResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordedAttempt:
    """Values of a committed attempt, captured before the commit."""

    id: uuid.UUID
    user_id: uuid.UUID
    quiz_id: uuid.UUID
    score: float
    percentage: float
    time_taken_seconds: int | None
    attempted_at: datetime
    results: list[dict[str, Any]]


class AttemptRecorder:
    """The only writer of quiz attempts.

    Every call inserts a new row; retakes are separate attempts, there is no
    upsert. The row is committed on its own so a failure leaves nothing behind.
    Nothing is read back after the commit: once it succeeds the caller gets
    a result, so a retry never follows a stored attempt.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        *,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        grade: GradeResult,
        raw_answers: list[dict[str, Any]],
        time_taken: int | None,
    ) -> RecordedAttempt:
        recorded = RecordedAttempt(
            id=uuid.uuid4(),
            user_id=user_id,
            quiz_id=quiz_id,
            score=grade.score,
            percentage=grade.percentage,
            time_taken_seconds=time_taken,
            attempted_at=datetime.utcnow(),
            results=grade.results_snapshot(),
        )
        attempt = QuizAttempt(
            id=recorded.id,
            user_id=user_id,
            quiz_id=quiz_id,
            score=grade.score,
            total_questions=grade.total_questions,
            correct_count=grade.correct_count,
            wrong_count=grade.wrong_count,
            unanswered_count=grade.unanswered_count,
            percentage=grade.percentage,
            time_taken_seconds=time_taken,
            answers=raw_answers,
            results=recorded.results,
            attempted_at=recorded.attempted_at,
        )
        try:
            self.db.add(attempt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.exception("attempt write failed user_id=%s quiz_id=%s", user_id, quiz_id)
            raise PersistenceError("could not save the attempt, please retry") from e

        log.info(
            "attempt recorded id=%s user_id=%s quiz_id=%s score=%s percentage=%.2f",
            recorded.id,
            user_id,
            quiz_id,
            recorded.score,
            recorded.percentage,
        )
        return recorded


def _round2(value: float) -> float:
    return round(float(value or 0.0), 2)


def attempt_summary(attempt: QuizAttempt, quiz: Quiz | None) -> dict[str, Any]:
    return {
        "attempt_id": str(attempt.id),
        "quiz": {
            "id": str(attempt.quiz_id),
            "title": quiz.title if quiz else None,
            "subject": quiz.subject if quiz else None,
            "exam_year": quiz.exam_year if quiz else None,
        },
        "score": attempt.score,
        "total_questions": attempt.total_questions,
        "correct_count": attempt.correct_count,
        "wrong_count": attempt.wrong_count,
        "unanswered_count": attempt.unanswered_count,
        "percentage": _round2(attempt.percentage),
        "time_taken_seconds": attempt.time_taken_seconds,
        "attempted_at": attempt.attempted_at,
    }


class AttemptQueries:
    """Read side over a user's own attempts."""

    def __init__(self, db: Session):
        self.db = db

    def history(
        self,
        user_id: uuid.UUID,
        *,
        page: int = 1,
        limit: int = 10,
        quiz_id: uuid.UUID | None = None,
    ) -> dict[str, Any]:
        where = [QuizAttempt.user_id == user_id]
        if quiz_id is not None:
            where.append(QuizAttempt.quiz_id == quiz_id)

        total = self.db.scalar(select(func.count(QuizAttempt.id)).where(*where)) or 0
        rows = self.db.execute(
            select(QuizAttempt, Quiz)
            .outerjoin(Quiz, Quiz.id == QuizAttempt.quiz_id)
            .where(*where)
            .order_by(QuizAttempt.attempted_at.desc(), QuizAttempt.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        return {
            "attempts": [attempt_summary(a, q) for a, q in rows],
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "total": int(total),
                "limit": limit,
            },
        }

    def stats(self, user_id: uuid.UUID) -> dict[str, Any]:
        rows = self.db.execute(
            select(QuizAttempt, Quiz.subject)
            .outerjoin(Quiz, Quiz.id == QuizAttempt.quiz_id)
            .where(QuizAttempt.user_id == user_id)
        ).all()

        if not rows:
            return {
                "total_attempts": 0,
                "average_score": 0.0,
                "average_percentage": 0.0,
                "total_questions_attempted": 0,
                "total_correct": 0,
                "total_wrong": 0,
                "total_unanswered": 0,
                "overall_accuracy": 0.0,
                "best_percentage": 0.0,
                "worst_percentage": 0.0,
                "subject_stats": [],
            }

        attempts = [a for a, _ in rows]
        n = len(attempts)
        total_questions = sum(a.total_questions for a in attempts)
        total_correct = sum(a.correct_count for a in attempts)

        by_subject: dict[str, dict[str, Any]] = {}
        for a, subject in rows:
            key = subject or "unknown"
            s = by_subject.setdefault(
                key,
                {"subject": key, "attempts": 0, "score_sum": 0.0, "correct": 0, "wrong": 0, "questions": 0},
            )
            s["attempts"] += 1
            s["score_sum"] += a.score
            s["correct"] += a.correct_count
            s["wrong"] += a.wrong_count
            s["questions"] += a.total_questions

        subject_stats = [
            {
                "subject": s["subject"],
                "attempts": s["attempts"],
                "average_score": _round2(s["score_sum"] / s["attempts"]),
                "total_correct": s["correct"],
                "total_wrong": s["wrong"],
                "accuracy": _round2(s["correct"] / s["questions"] * 100) if s["questions"] else 0.0,
            }
            for s in sorted(by_subject.values(), key=lambda s: s["subject"])
        ]

        return {
            "total_attempts": n,
            "average_score": _round2(sum(a.score for a in attempts) / n),
            "average_percentage": _round2(sum(a.percentage for a in attempts) / n),
            "total_questions_attempted": total_questions,
            "total_correct": total_correct,
            "total_wrong": sum(a.wrong_count for a in attempts),
            "total_unanswered": sum(a.unanswered_count for a in attempts),
            "overall_accuracy": _round2(total_correct / total_questions * 100) if total_questions else 0.0,
            "best_percentage": _round2(max(a.percentage for a in attempts)),
            "worst_percentage": _round2(min(a.percentage for a in attempts)),
            "subject_stats": subject_stats,
        }

    def detail(self, attempt_id: uuid.UUID, viewer: User) -> dict[str, Any]:
        attempt = self.db.scalar(select(QuizAttempt).where(QuizAttempt.id == attempt_id))
        if attempt is None:
            raise NotFoundError("attempt not found")
        # The snapshot discloses the answer key.
        if attempt.user_id != viewer.id and viewer.role != UserRole.admin:
            raise AuthorizationError("you don't have permission to view this attempt")

        quiz = self.db.scalar(select(Quiz).where(Quiz.id == attempt.quiz_id))
        out = attempt_summary(attempt, quiz)
        out["quiz"].update(
            {
                "description": quiz.description if quiz else None,
                "has_negative_marking": bool(quiz.has_negative_marking) if quiz else False,
                "negative_marks": quiz.negative_marks if quiz else None,
            }
        )
        out["results"] = list(attempt.results or [])
        return out
