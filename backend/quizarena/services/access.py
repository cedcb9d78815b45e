from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizarena.core.errors import AuthorizationError, NotFoundError
from quizarena.models.purchase import Purchase
from quizarena.models.quiz import Quiz

LOGIN_REQUIRED = "login required"
PURCHASE_REQUIRED = "this is a paid quiz, purchase it to get access"


@dataclass(frozen=True)
class AccessDecision:
    granted: bool
    reason: str | None = None


def evaluate_access(user_id: uuid.UUID | None, quiz: Quiz, *, has_purchase: bool) -> AccessDecision:
    """Access rule for one user and one quiz.

    Free quizzes are open to everyone, anonymous visitors included. A paid
    quiz needs a purchase row for the pair; its status is not inspected since
    purchases are only ever written as completed.
    """
    if not quiz.is_paid:
        return AccessDecision(granted=True)
    if user_id is None:
        return AccessDecision(granted=False, reason=LOGIN_REQUIRED)
    if has_purchase:
        return AccessDecision(granted=True)
    return AccessDecision(granted=False, reason=PURCHASE_REQUIRED)


def get_visible_quiz(db: Session, quiz_id: uuid.UUID, *, include_inactive: bool = False) -> Quiz:
    """Load a quiz; inactive quizzes are reported as missing unless asked for."""
    quiz = db.scalar(select(Quiz).where(Quiz.id == quiz_id))
    if quiz is None or (not quiz.is_active and not include_inactive):
        raise NotFoundError("quiz not found or inactive")
    return quiz


class AccessEvaluator:
    def __init__(self, db: Session):
        self.db = db

    def has_purchase(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> bool:
        found = self.db.scalar(
            select(Purchase.id).where(Purchase.user_id == user_id, Purchase.quiz_id == quiz_id).limit(1)
        )
        return found is not None

    def evaluate(self, user_id: uuid.UUID | None, quiz: Quiz) -> AccessDecision:
        # Free quizzes and anonymous users never need the purchase lookup.
        purchased = False
        if quiz.is_paid and user_id is not None:
            purchased = self.has_purchase(user_id, quiz.id)
        return evaluate_access(user_id, quiz, has_purchase=purchased)

    def require(self, user_id: uuid.UUID | None, quiz: Quiz) -> AccessDecision:
        decision = self.evaluate(user_id, quiz)
        if not decision.granted:
            raise AuthorizationError(decision.reason or "access denied")
        return decision
