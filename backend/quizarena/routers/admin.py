from __future__ import annotations

import math
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizarena.core.http import parse_uuid
from quizarena.core.rate_limit import rate_limit
from quizarena.core.security import require_roles
from quizarena.core.security_audit_log import audit_log
from quizarena.db.session import get_db
from quizarena.models.attempt import QuizAttempt
from quizarena.models.purchase import Purchase
from quizarena.models.quiz import Question, Quiz
from quizarena.models.security_audit import SecurityAuditEvent
from quizarena.models.suggestion import Suggestion, SuggestionStatus
from quizarena.models.user import User, UserRole
from quizarena.routers.quizzes import quiz_summary
from quizarena.schemas.admin import (
    AdminAttemptsResponse,
    DashboardStatsResponse,
    GrantAccessRequest,
    GrantAccessResponse,
    QuestionIn,
    QuizAdminResponse,
    QuizUpsertRequest,
    UsersListResponse,
)
from quizarena.schemas.suggestion import SuggestionAdminListResponse, SuggestionAdminOut, SuggestionStatusUpdate
from quizarena.services.purchases import PurchaseService
from quizarena.services.suggestions import SuggestionService, suggestion_out

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_quiz(db: Session, quiz_id: uuid.UUID) -> Quiz:
    quiz = db.scalar(select(Quiz).where(Quiz.id == quiz_id))
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return quiz


def _build_questions(items: list[QuestionIn]) -> list[Question]:
    return [
        Question(
            position=i,
            question_text=q.question_text,
            option1=q.option1,
            option2=q.option2,
            option3=q.option3,
            option4=q.option4,
            correct_option=q.correct_option,
            explanation=q.explanation,
            image_url=q.image_url,
        )
        for i, q in enumerate(items)
    ]


def _apply_metadata(quiz: Quiz, body: QuizUpsertRequest) -> None:
    quiz.title = body.title.strip()
    quiz.description = body.description
    quiz.subject = body.subject.strip()
    quiz.exam_year = body.exam_year
    quiz.education_level = body.education_level
    quiz.is_active = body.is_active
    quiz.is_paid = body.is_paid
    quiz.price = body.price if body.is_paid else 0.0
    quiz.prize = body.prize
    quiz.time_limit = body.time_limit
    quiz.has_negative_marking = body.has_negative_marking
    quiz.negative_marks = body.negative_marks if body.has_negative_marking else None


def _quiz_admin(quiz: Quiz) -> dict:
    questions = list(quiz.questions)
    out = quiz_summary(quiz, len(questions))
    out["questions"] = [
        {
            "id": str(q.id),
            "position": q.position,
            "question_text": q.question_text,
            "option1": q.option1,
            "option2": q.option2,
            "option3": q.option3,
            "option4": q.option4,
            "correct_option": q.correct_option,
            "explanation": q.explanation,
            "image_url": q.image_url,
        }
        for q in questions
    ]
    return out


@router.post("/quizzes", response_model=QuizAdminResponse, status_code=201)
def create_quiz(
    request: Request,
    body: QuizUpsertRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_create_quiz", limit=30, window_seconds=60),
):
    quiz = Quiz(created_by=current.id)
    _apply_metadata(quiz, body)
    quiz.questions = _build_questions(body.questions)
    db.add(quiz)
    db.flush()

    audit_log(
        db=db,
        request=request,
        event_type="admin_create_quiz",
        actor_user_id=current.id,
        quiz_id=quiz.id,
        meta={"question_count": len(body.questions), "is_paid": body.is_paid},
    )
    db.commit()
    db.refresh(quiz)
    return _quiz_admin(quiz)


@router.put("/quizzes/{quiz_id}", response_model=QuizAdminResponse)
def update_quiz(
    request: Request,
    quiz_id: str,
    body: QuizUpsertRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_update_quiz", limit=60, window_seconds=60),
):
    quiz = _get_quiz(db, parse_uuid(quiz_id, field="quiz id"))

    # Questions are replaced wholesale; attempts keep their own graded snapshot.
    try:
        _apply_metadata(quiz, body)
        quiz.questions = _build_questions(body.questions)
        db.flush()
        audit_log(
            db=db,
            request=request,
            event_type="admin_update_quiz",
            actor_user_id=current.id,
            quiz_id=quiz.id,
            meta={"question_count": len(body.questions)},
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail="failed to update quiz") from e

    db.refresh(quiz)
    return _quiz_admin(quiz)


@router.get("/quizzes/{quiz_id}", response_model=QuizAdminResponse)
def get_quiz_for_admin(
    request: Request,
    quiz_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
):
    quiz = _get_quiz(db, parse_uuid(quiz_id, field="quiz id"))
    audit_log(db=db, request=request, event_type="admin_view_quiz_answer_key", actor_user_id=current.id, quiz_id=quiz.id)
    db.commit()
    return _quiz_admin(quiz)


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(
    request: Request,
    quiz_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_quiz", limit=10, window_seconds=60),
):
    qid = _get_quiz(db, parse_uuid(quiz_id, field="quiz id")).id

    try:
        db.execute(delete(Suggestion).where(Suggestion.quiz_id == qid))
        deleted_attempts = db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id == qid)).rowcount
        deleted_purchases = db.execute(delete(Purchase).where(Purchase.quiz_id == qid)).rowcount
        db.execute(delete(Question).where(Question.quiz_id == qid))
        db.execute(delete(Quiz).where(Quiz.id == qid))
        audit_log(
            db=db,
            request=request,
            event_type="admin_delete_quiz",
            actor_user_id=current.id,
            quiz_id=qid,
            meta={"deleted_attempts": int(deleted_attempts or 0), "deleted_purchases": int(deleted_purchases or 0)},
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail="failed to delete quiz") from e

    return {"ok": True}


@router.get("/users", response_model=UsersListResponse)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    total = db.scalar(select(func.count(User.id))) or 0
    rows = db.scalars(
        select(User).order_by(User.created_at.desc(), User.id).offset((page - 1) * limit).limit(limit)
    ).all()
    return {
        "users": [
            {"id": str(u.id), "email": u.email, "name": u.name, "role": u.role.value, "created_at": u.created_at}
            for u in rows
        ],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total": int(total),
            "limit": limit,
        },
    }


@router.delete("/users/{user_id}")
def delete_user(
    request: Request,
    user_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_delete_user", limit=10, window_seconds=60),
):
    uid = parse_uuid(user_id, field="user id")
    if uid == current.id:
        raise HTTPException(status_code=400, detail="cannot delete self")

    u = db.scalar(select(User).where(User.id == uid))
    if u is None:
        raise HTTPException(status_code=404, detail="user not found")

    try:
        db.execute(delete(Suggestion).where(Suggestion.user_id == uid))
        db.execute(delete(QuizAttempt).where(QuizAttempt.user_id == uid))
        db.execute(delete(Purchase).where(Purchase.user_id == uid))
        db.execute(update(Quiz).where(Quiz.created_by == uid).values(created_by=None))

        # Keep the audit trail, drop hard references to the deleted user.
        db.execute(
            update(SecurityAuditEvent).where(SecurityAuditEvent.actor_user_id == uid).values(actor_user_id=None)
        )
        db.execute(
            update(SecurityAuditEvent).where(SecurityAuditEvent.target_user_id == uid).values(target_user_id=None)
        )

        db.execute(delete(User).where(User.id == uid))

        audit_log(db=db, request=request, event_type="admin_delete_user", actor_user_id=current.id, meta={"user_id": str(uid)})
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=500, detail="failed to delete user") from e

    return {"ok": True}


@router.post("/grant-access", response_model=GrantAccessResponse)
def grant_access(
    request: Request,
    body: GrantAccessRequest,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
    _: object = rate_limit(key_prefix="admin_grant_access", limit=60, window_seconds=60),
):
    uid = parse_uuid(body.user_id, field="user id")
    qid = parse_uuid(body.quiz_id, field="quiz id")

    purchase, created = PurchaseService(db).grant(uid, qid)
    if created:
        audit_log(
            db=db,
            request=request,
            event_type="admin_grant_access",
            actor_user_id=current.id,
            target_user_id=uid,
            quiz_id=qid,
        )
    db.commit()

    return {
        "purchase_id": str(purchase.id),
        "user_id": str(uid),
        "quiz_id": str(qid),
        "created": created,
    }


@router.get("/attempts", response_model=AdminAttemptsResponse)
def list_attempts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    quiz_id: str | None = None,
    user_id: str | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    where = []
    if quiz_id:
        where.append(QuizAttempt.quiz_id == parse_uuid(quiz_id, field="quiz id"))
    if user_id:
        where.append(QuizAttempt.user_id == parse_uuid(user_id, field="user id"))

    total = db.scalar(select(func.count(QuizAttempt.id)).where(*where)) or 0
    rows = db.execute(
        select(QuizAttempt, User.email, Quiz.title)
        .outerjoin(User, User.id == QuizAttempt.user_id)
        .outerjoin(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .where(*where)
        .order_by(QuizAttempt.attempted_at.desc(), QuizAttempt.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "attempts": [
            {
                "attempt_id": str(a.id),
                "user_id": str(a.user_id),
                "user_email": email,
                "quiz_id": str(a.quiz_id),
                "quiz_title": title,
                "score": a.score,
                "percentage": round(a.percentage, 2),
                "correct_count": a.correct_count,
                "wrong_count": a.wrong_count,
                "unanswered_count": a.unanswered_count,
                "total_questions": a.total_questions,
                "time_taken_seconds": a.time_taken_seconds,
                "attempted_at": a.attempted_at,
            }
            for a, email, title in rows
        ],
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total": int(total),
            "limit": limit,
        },
    }


@router.delete("/attempts/{attempt_id}")
def delete_attempt(
    request: Request,
    attempt_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
):
    aid = parse_uuid(attempt_id, field="attempt id")
    attempt = db.scalar(select(QuizAttempt).where(QuizAttempt.id == aid))
    if attempt is None:
        raise HTTPException(status_code=404, detail="attempt not found")

    db.execute(update(Suggestion).where(Suggestion.attempt_id == aid).values(attempt_id=None))
    db.delete(attempt)
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_attempt",
        actor_user_id=current.id,
        target_user_id=attempt.user_id,
        quiz_id=attempt.quiz_id,
        meta={"attempt_id": str(aid), "percentage": attempt.percentage},
    )
    db.commit()
    return {"ok": True}


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    return {
        "total_users": int(db.scalar(select(func.count(User.id))) or 0),
        "total_quizzes": int(db.scalar(select(func.count(Quiz.id))) or 0),
        "active_quizzes": int(db.scalar(select(func.count(Quiz.id)).where(Quiz.is_active == True)) or 0),  # noqa: E712
        "paid_quizzes": int(db.scalar(select(func.count(Quiz.id)).where(Quiz.is_paid == True)) or 0),  # noqa: E712
        "total_attempts": int(db.scalar(select(func.count(QuizAttempt.id))) or 0),
        "total_purchases": int(db.scalar(select(func.count(Purchase.id))) or 0),
        "total_revenue": round(float(db.scalar(select(func.coalesce(func.sum(Purchase.amount), 0.0))) or 0.0), 2),
        "average_percentage": round(float(db.scalar(select(func.avg(QuizAttempt.percentage))) or 0.0), 2),
    }


@router.get("/suggestions", response_model=SuggestionAdminListResponse)
def list_suggestions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    status: SuggestionStatus | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.admin)),
):
    return SuggestionService(db).list_all(page=page, limit=limit, status=status)


@router.patch("/suggestions/{suggestion_id}", response_model=SuggestionAdminOut)
def update_suggestion_status(
    request: Request,
    suggestion_id: str,
    body: SuggestionStatusUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
):
    service = SuggestionService(db)
    suggestion, previous = service.update_status(parse_uuid(suggestion_id, field="suggestion id"), body.status)
    audit_log(
        db=db,
        request=request,
        event_type="admin_update_suggestion",
        actor_user_id=current.id,
        target_user_id=suggestion.user_id,
        quiz_id=suggestion.quiz_id,
        meta={"suggestion_id": str(suggestion.id), "from": previous.value, "to": body.status.value},
    )
    db.commit()
    db.refresh(suggestion)

    out = suggestion_out(suggestion, service.quiz_for(suggestion))
    owner = db.scalar(select(User.email).where(User.id == suggestion.user_id))
    out.update({"user_id": str(suggestion.user_id), "user_email": owner})
    return out


@router.delete("/suggestions/{suggestion_id}")
def delete_suggestion(
    request: Request,
    suggestion_id: str,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(UserRole.admin)),
):
    suggestion = SuggestionService(db).delete(parse_uuid(suggestion_id, field="suggestion id"))
    audit_log(
        db=db,
        request=request,
        event_type="admin_delete_suggestion",
        actor_user_id=current.id,
        target_user_id=suggestion.user_id,
        quiz_id=suggestion.quiz_id,
        meta={"suggestion_id": str(suggestion.id)},
    )
    db.commit()
    return {"ok": True}
