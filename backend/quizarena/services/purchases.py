from __future__ import annotations

import logging
import math
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizarena.core.errors import NotFoundError, PersistenceError, ValidationError
from quizarena.models.purchase import Purchase, PurchaseStatus
from quizarena.models.quiz import Question, Quiz
from quizarena.models.user import User
from quizarena.services.access import get_visible_quiz

log = logging.getLogger(__name__)


class PurchaseService:
    """Creates access grants. No payment is taken: purchases are completed on write."""

    def __init__(self, db: Session):
        self.db = db

    def _existing(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> Purchase | None:
        return self.db.scalar(select(Purchase).where(Purchase.user_id == user_id, Purchase.quiz_id == quiz_id))

    def _create(self, *, user_id: uuid.UUID, quiz_id: uuid.UUID, amount: float) -> Purchase:
        purchase = Purchase(user_id=user_id, quiz_id=quiz_id, amount=amount, status=PurchaseStatus.completed)
        try:
            self.db.add(purchase)
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError("quiz already purchased") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("could not save the purchase, please retry") from e
        return purchase

    def purchase(self, user: User, quiz_id: uuid.UUID) -> tuple[Purchase, Quiz]:
        quiz = get_visible_quiz(self.db, quiz_id)
        if not quiz.is_paid:
            raise ValidationError("this quiz is free, no purchase required")
        if not quiz.price or quiz.price <= 0:
            raise ValidationError("invalid quiz price")
        if self._existing(user.id, quiz.id) is not None:
            raise ValidationError("you have already purchased this quiz")

        purchase = self._create(user_id=user.id, quiz_id=quiz.id, amount=float(quiz.price))
        log.info("purchase completed user_id=%s quiz_id=%s amount=%.2f", user.id, quiz.id, purchase.amount)
        return purchase, quiz

    def grant(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> tuple[Purchase, bool]:
        """Admin grant. Returns the purchase and whether it was newly created."""
        if self.db.scalar(select(User.id).where(User.id == user_id)) is None:
            raise NotFoundError("user not found")
        quiz = get_visible_quiz(self.db, quiz_id, include_inactive=True)

        existing = self._existing(user_id, quiz.id)
        if existing is not None:
            return existing, False

        purchase = self._create(user_id=user_id, quiz_id=quiz.id, amount=0.0)
        log.info("access granted user_id=%s quiz_id=%s", user_id, quiz.id)
        return purchase, True

    def list_for_user(self, user_id: uuid.UUID, *, page: int = 1, limit: int = 10) -> dict[str, Any]:
        total = self.db.scalar(select(func.count(Purchase.id)).where(Purchase.user_id == user_id)) or 0
        question_count = (
            select(func.count(Question.id)).where(Question.quiz_id == Quiz.id).correlate(Quiz).scalar_subquery()
        )
        rows = self.db.execute(
            select(Purchase, Quiz, question_count)
            .join(Quiz, Quiz.id == Purchase.quiz_id)
            .where(Purchase.user_id == user_id)
            .order_by(Purchase.purchased_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        return {
            "purchases": [
                {
                    "purchase_id": str(p.id),
                    "quiz": {
                        "id": str(q.id),
                        "title": q.title,
                        "description": q.description,
                        "subject": q.subject,
                        "exam_year": q.exam_year,
                        "price": q.price,
                        "prize": q.prize,
                        "question_count": int(n or 0),
                    },
                    "amount": p.amount,
                    "status": p.status.value,
                    "purchased_at": p.purchased_at,
                }
                for p, q, n in rows
            ],
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "total": int(total),
                "limit": limit,
            },
        }

    def my_quizzes(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        question_count = (
            select(func.count(Question.id)).where(Question.quiz_id == Quiz.id).correlate(Quiz).scalar_subquery()
        )
        rows = self.db.execute(
            select(Purchase, Quiz, question_count)
            .join(Quiz, Quiz.id == Purchase.quiz_id)
            .where(
                Purchase.user_id == user_id,
                Purchase.status == PurchaseStatus.completed,
                Quiz.is_active == True,  # noqa: E712
            )
            .order_by(Purchase.purchased_at.desc())
        ).all()
        return [
            {
                "quiz_id": str(q.id),
                "title": q.title,
                "subject": q.subject,
                "exam_year": q.exam_year,
                "prize": q.prize,
                "question_count": int(n or 0),
                "purchased_at": p.purchased_at,
            }
            for p, q, n in rows
        ]
