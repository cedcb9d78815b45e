from __future__ import annotations

import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from quizarena.core.config import settings
from quizarena.core.http import parse_uuid
from quizarena.core.rate_limit import general_rate_limit, rate_limit
from quizarena.core.security import get_current_user, get_optional_user, is_admin
from quizarena.db.session import get_db
from quizarena.models.quiz import Question, Quiz
from quizarena.models.user import User
from quizarena.schemas.quiz import (
    LeaderboardResponse,
    QuizDetailResponse,
    QuizListResponse,
    QuizSubmitRequest,
    QuizSubmitResponse,
)
from quizarena.services.access import AccessEvaluator, get_visible_quiz
from quizarena.services.attempts import AttemptRecorder
from quizarena.services.grading import GradingPolicy, grade, parse_submission
from quizarena.services.leaderboard import LeaderboardService

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


def quiz_summary(quiz: Quiz, question_count: int) -> dict:
    return {
        "id": str(quiz.id),
        "title": quiz.title,
        "description": quiz.description,
        "subject": quiz.subject,
        "exam_year": quiz.exam_year,
        "education_level": quiz.education_level,
        "is_active": bool(quiz.is_active),
        "is_paid": bool(quiz.is_paid),
        "price": float(quiz.price or 0.0) if quiz.is_paid else 0.0,
        "prize": quiz.prize,
        "time_limit": quiz.time_limit,
        "has_negative_marking": bool(quiz.has_negative_marking),
        "negative_marks": quiz.negative_marks,
        "question_count": int(question_count or 0),
        "created_at": quiz.created_at,
    }


def _visibility_filter(user: User | None) -> list:
    return [] if is_admin(user) else [Quiz.is_active == True]  # noqa: E712


@router.get("", response_model=QuizListResponse)
def list_quizzes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    subject: str | None = None,
    year: int | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
    _: object = general_rate_limit("quiz_list"),
):
    where = _visibility_filter(user)
    if subject:
        where.append(Quiz.subject == subject)
    if year is not None:
        where.append(Quiz.exam_year == year)
    if search:
        pattern = f"%{search.strip()}%"
        where.append(or_(Quiz.title.ilike(pattern), Quiz.description.ilike(pattern)))

    total = db.scalar(select(func.count(Quiz.id)).where(*where)) or 0
    free = db.scalar(select(func.count(Quiz.id)).where(*where, Quiz.is_paid == False)) or 0  # noqa: E712
    paid = db.scalar(select(func.count(Quiz.id)).where(*where, Quiz.is_paid == True)) or 0  # noqa: E712

    question_count = (
        select(func.count(Question.id)).where(Question.quiz_id == Quiz.id).correlate(Quiz).scalar_subquery()
    )
    rows = db.execute(
        select(Quiz, question_count)
        .where(*where)
        .order_by(Quiz.created_at.desc(), Quiz.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "quizzes": [quiz_summary(q, n) for q, n in rows],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total": int(total),
            "limit": limit,
        },
        "stats": {"total": int(total), "free": int(free), "paid": int(paid)},
    }


@router.get("/subjects")
def list_subjects(
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    rows = db.scalars(
        select(Quiz.subject).where(*_visibility_filter(user)).distinct().order_by(Quiz.subject.asc())
    ).all()
    return {"subjects": list(rows)}


@router.get("/years")
def list_years(
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    rows = db.scalars(
        select(Quiz.exam_year).where(*_visibility_filter(user)).distinct().order_by(Quiz.exam_year.desc())
    ).all()
    return {"years": list(rows)}


@router.get("/{quiz_id}/leaderboard", response_model=LeaderboardResponse)
def quiz_leaderboard(
    quiz_id: str,
    limit: int | None = Query(default=None),
    db: Session = Depends(get_db),
    _: object = general_rate_limit("quiz_leaderboard"),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    return LeaderboardService(db, settings).leaderboard(qid, limit)


@router.get("/{quiz_id}", response_model=QuizDetailResponse)
def get_quiz(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
    _: object = general_rate_limit("quiz_detail"),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    quiz = get_visible_quiz(db, qid, include_inactive=is_admin(user))

    decision = AccessEvaluator(db).evaluate(user.id if user else None, quiz)
    questions = list(quiz.questions)

    out = quiz_summary(quiz, len(questions))
    out["has_access"] = decision.granted
    out["access_message"] = decision.reason
    # Answer key and explanations stay server side.
    out["questions"] = (
        [
            {
                "id": str(q.id),
                "question_text": q.question_text,
                "option1": q.option1,
                "option2": q.option2,
                "option3": q.option3,
                "option4": q.option4,
                "image_url": q.image_url,
            }
            for q in questions
        ]
        if decision.granted
        else []
    )
    return out


@router.post("/{quiz_id}/attempts", response_model=QuizSubmitResponse, status_code=201)
def submit_attempt(
    quiz_id: str,
    body: QuizSubmitRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = rate_limit(
        key_prefix="quiz_submit",
        limit=settings.quiz_submit_rate_limit,
        window_seconds=settings.quiz_submit_rate_window_seconds,
    ),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    quiz = get_visible_quiz(db, qid, include_inactive=is_admin(user))

    # Hard gate: denied users are never graded.
    AccessEvaluator(db).require(user.id, quiz)

    raw_answers = [a.model_dump(mode="json") for a in body.answers]
    answers = parse_submission(raw_answers)
    policy = GradingPolicy.for_quiz(
        quiz,
        score_floor=settings.score_floor,
        default_negative_marks=settings.default_negative_marks,
    )
    result = grade(list(quiz.questions), answers, policy)

    attempt = AttemptRecorder(db).record(
        user_id=user.id,
        quiz_id=quiz.id,
        grade=result,
        raw_answers=raw_answers,
        time_taken=body.time_taken_seconds,
    )

    return {
        "attempt_id": str(attempt.id),
        "quiz_id": str(quiz.id),
        "quiz_title": quiz.title,
        "total_questions": result.total_questions,
        "correct_count": result.correct_count,
        "wrong_count": result.wrong_count,
        "unanswered_count": result.unanswered_count,
        "score": result.score,
        "percentage": result.display_percentage,
        "time_taken_seconds": attempt.time_taken_seconds,
        "attempted_at": attempt.attempted_at,
        "results": result.results_snapshot(),
    }
