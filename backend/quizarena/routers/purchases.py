from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizarena.core.http import parse_uuid
from quizarena.core.rate_limit import general_rate_limit
from quizarena.core.security import get_current_user, is_admin
from quizarena.db.session import get_db
from quizarena.models.user import User
from quizarena.schemas.purchase import (
    AccessCheckResponse,
    MyQuizzesResponse,
    PurchaseListResponse,
    PurchaseOut,
)
from quizarena.services.access import AccessEvaluator, get_visible_quiz
from quizarena.services.purchases import PurchaseService

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.get("/check-access/{quiz_id}", response_model=AccessCheckResponse)
def check_access(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = general_rate_limit("check_access"),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    quiz = get_visible_quiz(db, qid, include_inactive=is_admin(user))
    decision = AccessEvaluator(db).evaluate(user.id, quiz)
    return {
        "granted": decision.granted,
        "reason": decision.reason,
        "quiz": {
            "id": str(quiz.id),
            "title": quiz.title,
            "is_paid": bool(quiz.is_paid),
            "price": float(quiz.price or 0.0) if quiz.is_paid else 0.0,
            "prize": quiz.prize,
        },
    }


@router.post("/quizzes/{quiz_id}", response_model=PurchaseOut, status_code=201)
def purchase_quiz(
    quiz_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    _: object = general_rate_limit("purchase_quiz"),
):
    qid = parse_uuid(quiz_id, field="quiz id")
    purchase, quiz = PurchaseService(db).purchase(user, qid)
    db.commit()
    db.refresh(purchase)
    return {
        "id": str(purchase.id),
        "quiz_id": str(quiz.id),
        "quiz_title": quiz.title,
        "amount": purchase.amount,
        "status": purchase.status.value,
        "purchased_at": purchase.purchased_at,
    }


@router.get("/mine", response_model=PurchaseListResponse)
def my_purchases(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return PurchaseService(db).list_for_user(user.id, page=page, limit=limit)


@router.get("/my-quizzes", response_model=MyQuizzesResponse)
def my_quizzes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    items = PurchaseService(db).my_quizzes(user.id)
    return {"quizzes": items, "total_purchased": len(items)}
