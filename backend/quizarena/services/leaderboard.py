"""Per-quiz leaderboard.

Every attempt for the quiz is loaded and reduced to one best attempt per
user. The same ordering picks each user's best attempt and ranks users
against each other:

1. higher unrounded percentage,
2. lower time taken (attempts without a recorded time lose to any timed one),
3. earlier ``attempted_at``,
4. attempt id, so two rows never compare equal.

Ranks are positions in that order, so no two entries share a rank.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from quizarena.core.config import Settings
from quizarena.core.errors import ValidationError
from quizarena.models.attempt import QuizAttempt
from quizarena.models.user import User
from quizarena.services.access import get_visible_quiz

MASK = "***"


@dataclass(frozen=True)
class AttemptRow:
    attempt_id: uuid.UUID
    user_id: uuid.UUID
    email: str
    score: float
    percentage: float
    correct_count: int
    total_questions: int
    time_taken_seconds: int | None
    attempted_at: datetime


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: uuid.UUID
    user_email: str
    score: float
    percentage: float
    correct_count: int
    total_questions: int
    time_taken_seconds: int | None
    attempted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "user_id": str(self.user_id),
            "user_email": self.user_email,
            "score": self.score,
            "percentage": round(self.percentage, 2),
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "time_taken_seconds": self.time_taken_seconds,
            "attempted_at": self.attempted_at,
        }


def mask_email(value: str, visible: int = 2) -> str:
    """Keep a short prefix of the local part and the domain.

    The prefix is capped so at least one character of the local part is
    always hidden: ``alice@example.com`` -> ``al***@example.com``,
    ``ab@example.com`` -> ``a***@example.com``.
    """
    local, at, domain = str(value or "").partition("@")
    keep = max(0, min(int(visible), len(local) - 1))
    return f"{local[:keep]}{MASK}{at}{domain}"


def _order_key(row: AttemptRow) -> tuple:
    untimed = row.time_taken_seconds is None
    return (
        -row.percentage,
        untimed,
        0 if untimed else row.time_taken_seconds,
        row.attempted_at,
        str(row.attempt_id),
    )


def is_better(a: AttemptRow, b: AttemptRow) -> bool:
    return _order_key(a) < _order_key(b)


def best_attempt_per_user(rows: Iterable[AttemptRow]) -> dict[uuid.UUID, AttemptRow]:
    best: dict[uuid.UUID, AttemptRow] = {}
    for row in rows:
        current = best.get(row.user_id)
        if current is None or is_better(row, current):
            best[row.user_id] = row
    return best


def rank_entries(rows: Iterable[AttemptRow], limit: int, *, mask_visible: int = 2) -> list[LeaderboardEntry]:
    ordered = sorted(best_attempt_per_user(rows).values(), key=_order_key)
    return [
        LeaderboardEntry(
            rank=i,
            user_id=row.user_id,
            user_email=mask_email(row.email, mask_visible),
            score=row.score,
            percentage=row.percentage,
            correct_count=row.correct_count,
            total_questions=row.total_questions,
            time_taken_seconds=row.time_taken_seconds,
            attempted_at=row.attempted_at,
        )
        for i, row in enumerate(ordered[:limit], start=1)
    ]


class LeaderboardService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return int(self.settings.leaderboard_default_limit)
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        return min(int(limit), int(self.settings.leaderboard_max_limit))

    def load_rows(self, quiz_id: uuid.UUID) -> list[AttemptRow]:
        result = self.db.execute(
            select(QuizAttempt, User.email)
            .join(User, User.id == QuizAttempt.user_id)
            .where(QuizAttempt.quiz_id == quiz_id)
        ).all()
        return [
            AttemptRow(
                attempt_id=a.id,
                user_id=a.user_id,
                email=email,
                score=a.score,
                percentage=a.percentage,
                correct_count=a.correct_count,
                total_questions=a.total_questions,
                time_taken_seconds=a.time_taken_seconds,
                attempted_at=a.attempted_at,
            )
            for a, email in result
        ]

    def leaderboard(self, quiz_id: uuid.UUID, limit: int | None = None) -> dict[str, Any]:
        effective = self.resolve_limit(limit)
        quiz = get_visible_quiz(self.db, quiz_id)
        entries = rank_entries(
            self.load_rows(quiz.id),
            effective,
            mask_visible=int(self.settings.leaderboard_mask_visible_chars),
        )
        return {
            "quiz_id": str(quiz.id),
            "quiz_title": quiz.title,
            "leaderboard": [e.to_dict() for e in entries],
        }
