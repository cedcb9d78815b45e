from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from quizarena.schemas.quiz import Pagination


class AccessQuiz(BaseModel):
    id: str
    title: str
    is_paid: bool
    price: float
    prize: str | None = None


class AccessCheckResponse(BaseModel):
    granted: bool
    reason: str | None = None
    quiz: AccessQuiz


class PurchaseOut(BaseModel):
    id: str
    quiz_id: str
    quiz_title: str
    amount: float
    status: str
    purchased_at: datetime


class PurchaseQuiz(BaseModel):
    id: str
    title: str
    description: str
    subject: str
    exam_year: int
    price: float
    prize: str | None = None
    question_count: int


class PurchaseListItem(BaseModel):
    purchase_id: str
    quiz: PurchaseQuiz
    amount: float
    status: str
    purchased_at: datetime


class PurchaseListResponse(BaseModel):
    purchases: list[PurchaseListItem]
    pagination: Pagination


class MyQuizItem(BaseModel):
    quiz_id: str
    title: str
    subject: str
    exam_year: int
    prize: str | None = None
    question_count: int
    purchased_at: datetime


class MyQuizzesResponse(BaseModel):
    quizzes: list[MyQuizItem]
    total_purchased: int
